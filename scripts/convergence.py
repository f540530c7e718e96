"""
scripts/convergence.py — Health-gated, step-bounded PG convergence loop.

One ConvergenceDriver run moves a single parameter (pg_num or pgp_num) of a
pool up to its target. Each tick:

    read health  → gate rejects?      → no-op, wait for next tick
    read value   → value >= target?   → DONE
    write min(value + step, target)   → settle pause

raise_pool() runs the pg_num phase, pauses, then runs the pgp_num phase.

Every pause goes through a Waiter; cancelling its token (from another thread
or a caller driving the loop) ends the run at the next wait and stops a
pending write. SIGINT/SIGTERM do not go through the token: the CLI's handler
raises Cancelled right where the main thread is, ceph call included.
Nothing is buffered here: ceph is the only source of truth, so there is
nothing to clean up on cancellation.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Protocol

from scripts.ceph_cli import Cancelled
from scripts.health.gate import evaluate, parse_snapshot

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)


class PgParameter(str, enum.Enum):
    PG_NUM = "pg_num"  # primary
    PGP_NUM = "pgp_num"  # peer, raised only after pg_num reached target


class TickOutcome(enum.Enum):
    UNHEALTHY = "unhealthy"
    RAISED = "raised"
    DONE = "done"


@dataclass(frozen=True)
class PhaseTarget:
    pool: str
    parameter: PgParameter
    target: int
    step: int = 10


class CephRunner(Protocol):
    def read_health(self) -> bytes: ...

    def read_value(self, pool: str, parameter: str) -> int: ...

    def write_value(self, pool: str, parameter: str, value: int) -> None: ...


class Waiter:
    """Blocking waits that end early, with Cancelled, once the token is set."""

    def __init__(
        self,
        token: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.token = token if token is not None else threading.Event()
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def cancel(self) -> None:
        self.token.set()

    def raise_if_cancelled(self) -> None:
        if self.token.is_set():
            raise Cancelled("interrupted")

    def wait(self, seconds: float) -> None:
        if self.token.wait(max(0.0, seconds)):
            raise Cancelled("interrupted")


def next_value(current: int, target: int, step: int) -> int:
    """Next value to write: one step up, never past the target."""
    return min(current + step, target)


def _secs(seconds: float) -> str:
    return f"{seconds:g}s"


class ConvergenceDriver:
    def __init__(
        self,
        phase: PhaseTarget,
        runner: CephRunner,
        waiter: Waiter,
        tick_seconds: float = 10.0,
        settle_seconds: float = 40.0,
    ) -> None:
        self.phase = phase
        self.runner = runner
        self.waiter = waiter
        self.tick_seconds = tick_seconds
        self.settle_seconds = settle_seconds

    def tick(self) -> TickOutcome:
        """One pass: health gate, read, decide, and at most one write + settle."""
        pool = self.phase.pool
        parameter = self.phase.parameter.value

        snapshot = parse_snapshot(self.runner.read_health())
        logger.debug("health: %s", snapshot)
        verdict = evaluate(snapshot)
        if not verdict.passed:
            logger.debug("Cluster is not healthy. Retrying. %s", verdict)
            return TickOutcome.UNHEALTHY

        # Never cached: ceph may have moved the value on its own between ticks.
        current = self.runner.read_value(pool, parameter)
        if current >= self.phase.target:
            return TickOutcome.DONE

        new = next_value(current, self.phase.target, self.phase.step)
        self.waiter.raise_if_cancelled()
        self.runner.write_value(pool, parameter, new)
        logger.info(
            "Raising %s of %r from %d to %d (target=%d)",
            parameter,
            pool,
            current,
            new,
            self.phase.target,
        )
        logger.info(
            "Waiting %s for Ceph to recognize the change before continuing.",
            _secs(self.settle_seconds),
        )
        self.waiter.wait(self.settle_seconds)
        return TickOutcome.RAISED

    def run(self) -> None:
        """Tick at a fixed cadence until the phase is done.

        The first tick fires one interval after start. A tick that overruns
        the interval (the settle pause always does) is followed immediately by
        the next one; missed ticks are dropped, not replayed.
        """
        next_tick = self.waiter.now() + self.tick_seconds
        while True:
            self.waiter.wait(next_tick - self.waiter.now())
            if self.tick() is TickOutcome.DONE:
                logger.info(
                    "DONE: %s of %r is now %d.",
                    self.phase.parameter.value,
                    self.phase.pool,
                    self.phase.target,
                )
                return
            next_tick = max(next_tick + self.tick_seconds, self.waiter.now())


def raise_pool(cfg: Settings, runner: CephRunner, waiter: Waiter) -> None:
    """Raise pg_num to cfg.TARGET, pause, then raise pgp_num to cfg.TARGET."""

    def _driver(parameter: PgParameter) -> ConvergenceDriver:
        return ConvergenceDriver(
            PhaseTarget(cfg.POOL, parameter, cfg.TARGET, cfg.DELTA),
            runner,
            waiter,
            tick_seconds=cfg.TICK_SECONDS,
            settle_seconds=cfg.SETTLE_SECONDS,
        )

    logger.info(
        "Starting in %s to raise 'pg_num' of %r to %d.",
        _secs(cfg.TICK_SECONDS),
        cfg.POOL,
        cfg.TARGET,
    )
    _driver(PgParameter.PG_NUM).run()

    logger.info(
        "Waiting %s then continuing raising 'pgp_num' of %r to %d.",
        _secs(cfg.PHASE_DELAY_SECONDS),
        cfg.POOL,
        cfg.TARGET,
    )
    waiter.wait(cfg.PHASE_DELAY_SECONDS)

    _driver(PgParameter.PGP_NUM).run()
