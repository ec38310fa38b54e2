"""
VeraCore — Common Primitives

Shared enums, base classes, and utilities used across all systems.
"""

from __future__ import annotations

import enum
import hashlib
import json
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel
from ulid import ULID


def new_id() -> str:
    """Generate a new ULID string. Time-sortable, globally unique."""
    return str(ULID())


def utc_now() -> datetime:
    """Current UTC time, timezone-aware."""
    return datetime.now(timezone.utc)


def stable_hash(payload: Any) -> str:
    """
    SHA-256 of the canonical JSON form of a payload.

    Keys are sorted so that two structurally equal payloads hash identically
    regardless of insertion order.
    """
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# ─── Enums ────────────────────────────────────────────────────────


class SystemID(str, enum.Enum):
    DETECT = "detect"
    DECISION = "decision"
    RUN_STATE = "run_state"
    DETERMINISM = "determinism"
    PIPELINE = "pipeline"


class Severity(str, enum.Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class FindingStatus(str, enum.Enum):
    CONFIRMED = "CONFIRMED"
    SUSPECTED = "SUSPECTED"
    OBSERVED = "OBSERVED"
    UNKNOWN = "UNKNOWN"


# Higher rank is a stronger claim. OBSERVED is a success record and sits
# outside the failure ladder, so it shares the SUSPECTED rung.
STATUS_RANK: dict[FindingStatus, int] = {
    FindingStatus.UNKNOWN: 0,
    FindingStatus.SUSPECTED: 1,
    FindingStatus.OBSERVED: 1,
    FindingStatus.CONFIRMED: 2,
}


class Verdict(str, enum.Enum):
    READY = "READY"
    FRICTION = "FRICTION"
    DO_NOT_LAUNCH = "DO_NOT_LAUNCH"


# ─── Base Models ──────────────────────────────────────────────────


class VeraBaseModel(BaseModel):
    """Base model for all VeraCore primitives."""

    model_config = {"populate_by_name": True, "from_attributes": True}


class FrozenModel(VeraBaseModel):
    """Immutable record. Used for inputs that flow through pure functions."""

    model_config = {"populate_by_name": True, "from_attributes": True, "frozen": True}
