"""
scripts/ceph_cli.py — Thin wrapper around the `ceph` command line.

Exposes the three operations the convergence driver needs:

    runner = CephCommandRunner.from_settings(cfg)
    raw = runner.read_health()                 # ceph health -f json
    n = runner.read_value("data", "pg_num")    # ceph osd pool get data pg_num -f json
    runner.write_value("data", "pg_num", 1010) # ceph osd pool set data pg_num 1010

Every failure (non-zero exit, timeout, missing binary) raises CommandError.
Nothing here retries: a failed write leaves the cluster in an unknown state
and an operator has to look at it.
"""

from __future__ import annotations

import logging
import subprocess
from typing import TYPE_CHECKING

import orjson

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)


class PgRaiseError(Exception):
    """Base class for fatal pgraise errors."""


class CommandError(PgRaiseError):
    def __init__(self, args: list[str], message: str, output: str = "") -> None:
        self.command = args
        self.output = output
        super().__init__(f"{' '.join(args)}: {message}")


class MalformedResponseError(PgRaiseError):
    """ceph answered, but not with something we can parse."""


class Cancelled(PgRaiseError):
    """An interrupt arrived while waiting."""


class CephCommandRunner:
    def __init__(self, ceph_bin: str = "ceph", timeout_seconds: int = 60) -> None:
        self.ceph_bin = ceph_bin
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, cfg: Settings) -> CephCommandRunner:
        return cls(ceph_bin=cfg.CEPH_BIN, timeout_seconds=cfg.CEPH_TIMEOUT_SECONDS)

    def read_health(self) -> bytes:
        return self._run("health", "-f", "json")

    def read_value(self, pool: str, parameter: str) -> int:
        out = self._run("osd", "pool", "get", pool, parameter, "-f", "json")
        return parse_value(out, pool, parameter)

    def write_value(self, pool: str, parameter: str, value: int) -> None:
        self._run("osd", "pool", "set", pool, parameter, str(value))

    def _run(self, *args: str) -> bytes:
        cmd = [self.ceph_bin, *args]
        logger.debug("runCmd: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            raise CommandError(cmd, f"timed out ({self.timeout_seconds}s)") from exc
        except OSError as exc:
            raise CommandError(cmd, f"could not run {self.ceph_bin}: {exc}") from exc

        if result.returncode != 0:
            output = result.stdout.decode("utf-8", errors="replace").strip()
            logger.error("runCmd: %s", output)
            raise CommandError(cmd, f"exit status {result.returncode}", output=output)
        return result.stdout


def parse_value(raw: bytes, pool: str, parameter: str) -> int:
    """Pull `parameter` out of a `ceph osd pool get -f json` payload."""
    try:
        payload = orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        raise MalformedResponseError(f"could not decode {parameter} of {pool}: {exc}") from exc

    if not isinstance(payload, dict) or parameter not in payload:
        raise MalformedResponseError(f"Error in getting {parameter} of {pool}")

    value = payload[parameter]
    # bool is an int subclass; ceph never reports counts as true/false
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponseError(f"{parameter} of {pool} is not a number: {value!r}")
    return int(value)
