"""
VeraCore — Detect Service

Runs every extracted expectation through classification and calibration
and returns findings in a deterministic order: by source file, line,
column and then expectation id. Observation order never leaks into the
output.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from veracore.config import VeraCoreConfig
from veracore.primitives.expectation import Expectation
from veracore.primitives.finding import Finding
from veracore.primitives.observation import Observation
from veracore.systems.detect.calibrator import apply_calibration
from veracore.systems.detect.classifier import classify
from veracore.systems.detect.constitution import (
    batch_validate,
    build_observe_evidence_index,
)
from veracore.systems.detect.types import ValidationBatch

logger = structlog.get_logger()


class DetectService:
    """Classifier -> Calibrator -> deterministic sort -> Constitution."""

    def __init__(self, config: VeraCoreConfig | None = None) -> None:
        self._config = config or VeraCoreConfig()
        self._logger = logger.bind(system="detect", component="service")

    def detect(
        self,
        expectations: Iterable[Expectation | Mapping[str, Any]],
        observations: Iterable[Observation],
    ) -> list[Finding]:
        by_expectation: dict[str, Observation] = {}
        for obs in observations:
            # First observation wins; later duplicates are logged and ignored
            if obs.expectation_id in by_expectation:
                self._logger.warning("duplicate_observation", expectation_id=obs.expectation_id)
                continue
            by_expectation[obs.expectation_id] = obs

        findings: list[Finding] = []
        for expectation in expectations:
            exp_id = (
                expectation.id
                if isinstance(expectation, Expectation)
                else str(expectation.get("id", ""))
            )
            observation = by_expectation.get(exp_id)
            finding = classify(expectation, observation, self._config.classifier)
            findings.append(apply_calibration(finding, observation, self._config.calibration))

        findings.sort(key=lambda f: f.sort_key)

        self._logger.info(
            "detection_complete",
            expectations=len(findings),
            silent_failures=sum(1 for f in findings if f.classification.is_silent_failure),
        )
        return findings

    def enforce(
        self,
        findings: Iterable[Finding | Mapping[str, Any]],
        observations: Iterable[Observation],
        evidence_files: Iterable[str] | None = None,
    ) -> ValidationBatch:
        """Constitution pass against the observation record and evidence store."""
        return batch_validate(
            findings,
            evidence_file_index=frozenset(evidence_files) if evidence_files is not None else None,
            observe_evidence_by_expectation=build_observe_evidence_index(observations),
        )
