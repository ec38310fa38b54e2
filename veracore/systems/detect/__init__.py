"""
VeraCore — Detect

Turns (Expectation, Observation) pairs into evidence-backed Findings:
classification, confidence calibration, severity, and the constitution
pass that guards published findings against overclaiming.
"""

from veracore.systems.detect.calibrator import (
    apply_calibration,
    calibrate,
    calibration_stats,
)
from veracore.systems.detect.classifier import (
    classify,
    detection_stats,
    evidence_kinds,
    evidence_score,
    impact_for,
)
from veracore.systems.detect.constitution import (
    batch_validate,
    build_evidence_file_index,
    build_observe_evidence_index,
    validate_finding,
)
from veracore.systems.detect.service import DetectService
from veracore.systems.detect.severity import KindTier, kind_tier, map_severity
from veracore.systems.detect.types import (
    CalibrationResult,
    CalibrationRule,
    CalibrationStats,
    DetectionStats,
    DroppedFinding,
    EvidenceKind,
    ValidationBatch,
)

__all__ = [
    "CalibrationResult",
    "CalibrationRule",
    "CalibrationStats",
    "DetectService",
    "DetectionStats",
    "DroppedFinding",
    "EvidenceKind",
    "KindTier",
    "ValidationBatch",
    "apply_calibration",
    "batch_validate",
    "build_evidence_file_index",
    "build_observe_evidence_index",
    "calibrate",
    "calibration_stats",
    "classify",
    "detection_stats",
    "evidence_kinds",
    "evidence_score",
    "impact_for",
    "kind_tier",
    "map_severity",
    "validate_finding",
]
