"""
Tests for the Detect Service.

Covers:
  - One finding per expectation
  - Deterministic ordering independent of observation order
  - Calibration applied in the pipeline
  - Constitution pass via enforce()
"""

from __future__ import annotations

from veracore.primitives.common import FindingStatus
from veracore.primitives.expectation import Expectation
from veracore.primitives.finding import ClassificationKind
from veracore.primitives.observation import Observation, ObservationCause
from veracore.systems.detect.service import DetectService


def _make_expectations() -> list[Expectation]:
    return [
        Expectation.build(type="navigation", kind="navigate", value="/b", file="src/b.jsx", line=5),
        Expectation.build(type="navigation", kind="navigate", value="/a2", file="src/a.jsx", line=20),
        Expectation.build(type="navigation", kind="navigate", value="/a1", file="src/a.jsx", line=2),
    ]


def _make_observations(expectations: list[Expectation]) -> list[Observation]:
    b, a2, a1 = expectations
    return [
        Observation(expectation_id=a1.id, attempted=True, observed=True),
        Observation(
            expectation_id=b.id,
            attempted=True,
            cause=ObservationCause.NO_CHANGE,
            evidence_files=["b.png", "dom_diff_b.json"],
        ),
        Observation(expectation_id=a2.id, attempted=False),
    ]


class TestDetect:
    def test_one_finding_per_expectation_in_source_order(self):
        expectations = _make_expectations()
        findings = DetectService().detect(expectations, _make_observations(expectations))
        assert [(f.source.file, f.source.line) for f in findings] == [
            ("src/a.jsx", 2),
            ("src/a.jsx", 20),
            ("src/b.jsx", 5),
        ]

    def test_observation_order_does_not_matter(self):
        expectations = _make_expectations()
        observations = _make_observations(expectations)
        service = DetectService()
        forward = service.detect(expectations, observations)
        backward = service.detect(list(reversed(expectations)), list(reversed(observations)))
        assert [f.model_dump_json() for f in forward] == [f.model_dump_json() for f in backward]

    def test_calibration_is_applied(self):
        expectations = _make_expectations()
        findings = DetectService().detect(expectations, _make_observations(expectations))
        silent = next(f for f in findings if f.classification.kind == ClassificationKind.SILENT_FAILURE)
        assert silent.confidence.applied_calibration
        assert silent.confidence.original_score == 0.65

    def test_first_duplicate_observation_wins(self):
        exp = _make_expectations()[0]
        observations = [
            Observation(expectation_id=exp.id, attempted=True, observed=True),
            Observation(expectation_id=exp.id, attempted=False),
        ]
        findings = DetectService().detect([exp], observations)
        assert findings[0].classification.kind == ClassificationKind.OBSERVED


class TestEnforce:
    def test_enforce_downgrades_unindexed_evidence(self):
        expectations = _make_expectations()
        observations = _make_observations(expectations)
        service = DetectService()
        findings = service.detect(expectations, observations)
        batch = service.enforce(findings, observations, evidence_files=["b.png"])
        assert batch.downgraded == 1
        statuses = {f.classification.kind: f.status for f in batch.valid}
        assert statuses[ClassificationKind.SILENT_FAILURE] == FindingStatus.SUSPECTED

    def test_enforce_keeps_fully_linked_findings(self):
        expectations = _make_expectations()
        observations = _make_observations(expectations)
        service = DetectService()
        findings = service.detect(expectations, observations)
        batch = service.enforce(findings, observations, evidence_files=["b.png", "dom_diff_b.json"])
        assert batch.downgraded == 0
        assert any(f.status == FindingStatus.CONFIRMED for f in batch.valid)
