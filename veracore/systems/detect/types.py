"""
VeraCore — Detect Types

Result records produced by the detection stages. The Finding itself lives
in primitives because every downstream system consumes it.
"""

from __future__ import annotations

import enum

from pydantic import Field

from veracore.primitives.common import VeraBaseModel
from veracore.primitives.finding import Finding


class EvidenceKind(str, enum.Enum):
    """Independent kinds of evidence that can back a silent failure."""

    SCREENSHOT = "screenshot"
    DOM_DIFF = "dom_diff"
    ARTIFACT = "artifact"
    DOM_CHANGE_SIGNAL = "dom_change_signal"
    NETWORK_SIGNAL = "network_signal"


class CalibrationRule(str, enum.Enum):
    STABLE_ENVIRONMENT_WITH_SILENCE = "stable-environment-with-silence"
    UNSTABLE_ENVIRONMENT_WITH_SILENCE = "unstable-environment-with-silence"
    ADAPTIVE_EVENTS_DETECTED = "adaptive-events-detected"
    MINIMAL_DOM_CHANGES_WITH_SILENCE = "minimal-dom-changes-with-silence"
    HIGH_DOM_ACTIVITY_WITH_SILENCE = "high-dom-activity-with-silence"
    ISOLATED_NETWORK_FAILURES = "isolated-network-failures"


class CalibrationResult(VeraBaseModel):
    original_score: float
    calibrated_score: float
    adjustments: list[str] = Field(default_factory=list)
    applied_calibration: bool = False
    clamped: bool = False

    @property
    def delta(self) -> float:
        return round(self.calibrated_score - self.original_score, 3)


class CalibrationStats(VeraBaseModel):
    total_findings: int = 0
    calibrated: int = 0
    increased: int = 0
    decreased: int = 0
    unchanged: int = 0
    average_adjustment: float = 0.0
    max_adjustment: float = 0.0


class DetectionStats(VeraBaseModel):
    total: int = 0
    by_classification: dict[str, int] = Field(default_factory=dict)
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_status: dict[str, int] = Field(default_factory=dict)
    average_confidence: float = 0.0


class DroppedFinding(VeraBaseModel):
    id: str
    reason: str


class ValidationBatch(VeraBaseModel):
    valid: list[Finding] = Field(default_factory=list)
    downgraded: int = 0
    dropped: list[DroppedFinding] = Field(default_factory=list)
