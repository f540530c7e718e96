"""
scripts/health/gate.py — Decides whether the cluster may take a PG raise.

HEALTH_WARN alone is too coarse: plenty of warnings (clock skew, a pool
without an application tag, ...) say nothing about whether the cluster can
absorb more placement groups. Under WARN only the TRACKED_CHECKS block.
"""

from __future__ import annotations

from pydantic import ValidationError

from scripts.ceph_cli import MalformedResponseError
from scripts.health import (
    HEALTH_ERR,
    HEALTH_OK,
    HEALTH_WARN,
    TRACKED_CHECKS,
    GateResult,
    HealthSnapshot,
)


def parse_snapshot(raw: bytes | str) -> HealthSnapshot:
    try:
        return HealthSnapshot.model_validate_json(raw)
    except ValidationError as exc:
        raise MalformedResponseError(f"health: Could not unmarshal json: {exc}") from exc


def evaluate(snapshot: HealthSnapshot) -> GateResult:
    if snapshot.status == HEALTH_OK:
        return GateResult(True, "cluster is HEALTH_OK")
    if snapshot.status == HEALTH_ERR:
        return GateResult(False, "cluster is HEALTH_ERR")

    status = snapshot.status or "no status"
    for name in TRACKED_CHECKS:
        if snapshot.severity(name) == HEALTH_WARN:
            return GateResult(False, f"{status} with {name} in {HEALTH_WARN}")

    return GateResult(True, f"{status} without blocking checks")


def is_safe_to_raise(snapshot: HealthSnapshot) -> bool:
    return evaluate(snapshot).passed
