"""
tests/conftest.py — Shared fixtures and path setup for all tests.

Adds the project root to sys.path so unit tests can import:
    from config.settings import Settings
    from scripts.convergence import ConvergenceDriver
    from scripts.health.gate import is_safe_to_raise
"""
import pathlib
import sys

import pytest

# Make project root importable without installing as a package
PROJECT_ROOT = pathlib.Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from scripts.ceph_cli import Cancelled, CommandError  # noqa: E402


class FakeWaiter:
    """Records every pause and advances a fake clock instead of sleeping."""

    def __init__(self, cancel_after: int | None = None):
        self.clock = 0.0
        self.waits: list[float] = []
        self.cancel_after = cancel_after
        self.cancelled = False

    def now(self) -> float:
        return self.clock

    def cancel(self) -> None:
        self.cancelled = True

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise Cancelled("interrupted")

    def wait(self, seconds: float) -> None:
        if self.cancel_after is not None and len(self.waits) >= self.cancel_after:
            self.cancelled = True
        if self.cancelled:
            raise Cancelled("interrupted")
        seconds = max(0.0, seconds)
        self.waits.append(seconds)
        self.clock += seconds


class FakeCeph:
    """Scripted stand-in for CephCommandRunner.

    `health` is a list of raw payloads served in order (the last one repeats).
    Values start at `values[parameter]` and move only through write_value.
    `events` keeps the interleaving of reads and writes.
    """

    def __init__(self, values: dict[str, int], health: list[bytes] | None = None):
        self.values = dict(values)
        self.health = list(health or [b'{"status": "HEALTH_OK"}'])
        self.writes: list[tuple[str, str, int]] = []
        self.events: list[str] = []
        self.fail_write = False
        self.fail_read = False

    def read_health(self) -> bytes:
        self.events.append("health")
        if len(self.health) > 1:
            return self.health.pop(0)
        return self.health[0]

    def read_value(self, pool: str, parameter: str) -> int:
        self.events.append(f"get {parameter}")
        if self.fail_read:
            raise CommandError(["ceph", "osd", "pool", "get", pool, parameter], "exit status 2")
        return self.values[parameter]

    def write_value(self, pool: str, parameter: str, value: int) -> None:
        self.events.append(f"set {parameter} {value}")
        if self.fail_write:
            raise CommandError(["ceph", "osd", "pool", "set", pool, parameter, str(value)], "exit status 1")
        self.writes.append((pool, parameter, value))
        self.values[parameter] = value


@pytest.fixture
def waiter():
    return FakeWaiter()


@pytest.fixture
def make_waiter():
    return FakeWaiter


@pytest.fixture
def make_ceph():
    return FakeCeph
