"""
scripts/health — Cluster health snapshot model and the raise gate.

The snapshot mirrors `ceph health -f json`. Only the overall status and the
severity of each named check matter here; everything else in the payload is
ignored.

Usage:
    from scripts.health import HealthSnapshot
    from scripts.health.gate import parse_snapshot, is_safe_to_raise
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, field_validator

HEALTH_OK = "HEALTH_OK"
HEALTH_WARN = "HEALTH_WARN"
HEALTH_ERR = "HEALTH_ERR"

# Checks that block a raise while the cluster is in HEALTH_WARN.
TRACKED_CHECKS = (
    "PG_AVAILABILITY",
    "PG_DEGRADED",
    "REQUEST_SLOW",
    "OBJECT_MISPLACED",
)


class HealthCheck(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    severity: str | None = None


class TrackedChecks(BaseModel):
    """The checks entries that can block a raise; any other key is dropped unparsed."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    PG_AVAILABILITY: HealthCheck | None = None
    PG_DEGRADED: HealthCheck | None = None
    REQUEST_SLOW: HealthCheck | None = None
    OBJECT_MISPLACED: HealthCheck | None = None


class HealthSnapshot(BaseModel):
    """Point-in-time health report. A missing check has severity None (absent).

    A missing or null status is kept as "", which the gate treats like
    HEALTH_WARN: only the tracked checks decide.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    status: str = ""
    checks: TrackedChecks = TrackedChecks()

    @field_validator("status", mode="before")
    @classmethod
    def null_status_is_empty(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("checks", mode="before")
    @classmethod
    def null_checks_are_empty(cls, value: object) -> object:
        return {} if value is None else value

    def severity(self, name: str) -> str | None:
        check = getattr(self.checks, name, None)
        return check.severity if check is not None else None


@dataclass(frozen=True)
class GateResult:
    passed: bool
    message: str

    def __str__(self) -> str:
        status = "SAFE" if self.passed else "WAIT"
        return f"[{status}] {self.message}"
