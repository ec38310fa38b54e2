"""
VeraCore — Finding Primitives

A Finding is the verdict on one Expectation: what class of outcome it
was, how confident we are, how bad it is, and which evidence backs it.

Findings are produced deterministically. Identical inputs must yield
byte-identical serialised findings, so nothing here carries wall-clock
time or random identifiers.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import Field, field_serializer, field_validator, model_validator

from veracore.primitives.common import (
    FindingStatus,
    FrozenModel,
    Severity,
    VeraBaseModel,
)
from veracore.primitives.expectation import SourceRef
from veracore.primitives.observation import ObservationCause


class ClassificationKind(str, enum.Enum):
    OBSERVED = "observed"
    COVERAGE_GAP = "coverage-gap"
    UNPROVEN = "unproven"
    SILENT_FAILURE = "silent-failure"
    INFORMATIONAL = "informational"


class Judgment(str, enum.Enum):
    PASS = "PASS"
    WEAK_PASS = "WEAK_PASS"
    FAILURE_SILENT = "FAILURE_SILENT"
    FAILURE_MISLEADING = "FAILURE_MISLEADING"
    NEEDS_REVIEW = "NEEDS_REVIEW"


JUDGMENT_FOR_KIND: dict[ClassificationKind, Judgment] = {
    ClassificationKind.OBSERVED: Judgment.PASS,
    ClassificationKind.SILENT_FAILURE: Judgment.FAILURE_SILENT,
    ClassificationKind.UNPROVEN: Judgment.NEEDS_REVIEW,
    ClassificationKind.COVERAGE_GAP: Judgment.NEEDS_REVIEW,
    ClassificationKind.INFORMATIONAL: Judgment.WEAK_PASS,
}


class Classification(FrozenModel):
    """
    Closed outcome variant. ``cause`` is carried only by silent failures,
    and a silent failure always has one (``unknown`` when not determinable).
    """

    kind: ClassificationKind
    cause: ObservationCause | None = None

    @model_validator(mode="after")
    def _cause_only_on_silent_failure(self) -> Classification:
        if self.kind == ClassificationKind.SILENT_FAILURE and self.cause is None:
            raise ValueError("silent-failure classification requires a cause")
        if self.kind != ClassificationKind.SILENT_FAILURE and self.cause is not None:
            raise ValueError(f"{self.kind.value} classification cannot carry a cause")
        return self

    @classmethod
    def silent_failure(cls, cause: ObservationCause | None) -> Classification:
        return cls(kind=ClassificationKind.SILENT_FAILURE, cause=cause or ObservationCause.UNKNOWN)

    @classmethod
    def of(cls, kind: ClassificationKind) -> Classification:
        return cls(kind=kind)

    @classmethod
    def parse(cls, label: str) -> Classification:
        """Inverse of ``label``: ``"silent-failure:blocked"`` -> Classification."""
        kind, _, cause = label.partition(":")
        return cls(
            kind=ClassificationKind(kind),
            cause=ObservationCause(cause) if cause else None,
        )

    @property
    def label(self) -> str:
        if self.cause is not None:
            return f"{self.kind.value}:{self.cause.value}"
        return self.kind.value

    @property
    def is_silent_failure(self) -> bool:
        return self.kind == ClassificationKind.SILENT_FAILURE

    @property
    def judgment(self) -> Judgment:
        return JUDGMENT_FOR_KIND[self.kind]

    def __str__(self) -> str:
        return self.label


class FindingConfidence(VeraBaseModel):
    original_score: float = Field(default=0.0, ge=0.0, le=1.0)
    calibrated_score: float = Field(default=0.0, ge=0.0, le=1.0)
    adjustments: list[str] = Field(default_factory=list)
    applied_calibration: bool = False

    @property
    def score(self) -> float:
        return self.calibrated_score


class FindingEnrichment(VeraBaseModel):
    evidence_cross_artifact_notes: list[str] = Field(default_factory=list)


class Finding(VeraBaseModel):
    id: str
    expectation_id: str
    promise_kind: str = ""
    classification: Classification
    judgment: Judgment
    impact: Severity = Severity.LOW
    severity: Severity = Severity.LOW
    status: FindingStatus = FindingStatus.UNKNOWN
    confidence: FindingConfidence = Field(default_factory=FindingConfidence)
    evidence: list[str] = Field(default_factory=list)
    reason: str = ""
    source: SourceRef | None = None
    enrichment: FindingEnrichment = Field(default_factory=FindingEnrichment)

    @field_validator("classification", mode="before")
    @classmethod
    def _parse_label(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Classification.parse(value)
        return value

    @field_serializer("classification")
    def _serialise_label(self, value: Classification) -> str:
        return value.label

    @property
    def sort_key(self) -> tuple[str, int, int, str]:
        if self.source is None:
            return ("", 0, 0, self.id)
        return (self.source.file, self.source.line, self.source.column, self.id)
