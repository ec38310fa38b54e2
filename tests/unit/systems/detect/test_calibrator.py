"""
Tests for the Confidence Calibrator.

Covers:
  - Individual rules
  - Ordering (penalties before boosts)
  - Bounds on total adjustment and final score
  - Pass-through for non-calibrated findings
  - calibration_stats
"""

from __future__ import annotations

from veracore.config import CalibrationConfig
from veracore.primitives.expectation import Expectation
from veracore.primitives.finding import Finding
from veracore.primitives.observation import Observation, ObservationCause
from veracore.systems.detect.calibrator import apply_calibration, calibrate, calibration_stats
from veracore.systems.detect.classifier import classify


def _make_pair(
    signals: dict | None = None,
    timing: dict | None = None,
    evidence_files: list[str] | None = None,
    observed: bool = False,
) -> tuple[Finding, Observation]:
    exp = Expectation.build(
        type="navigation", kind="navigate", value="/checkout", file="src/App.jsx", line=3
    )
    obs = Observation(
        expectation_id=exp.id,
        attempted=True,
        observed=observed,
        cause=ObservationCause.NO_CHANGE,
        evidence_files=["a.png"] if evidence_files is None else evidence_files,
        signals=signals or {},
        timing=timing or {},
    )
    return classify(exp, obs), obs


class TestCalibrationRules:
    def test_stable_environment_boosts(self):
        finding, obs = _make_pair(signals={
            "silence_detected": True,
            "dom_change_count": 1,
            "network_requests": 3,
            "network_failures": 0,
        })
        result = calibrate(finding, obs)
        assert result.original_score == 0.55
        assert result.calibrated_score == 0.65
        assert len(result.adjustments) == 1
        assert result.adjustments[0].startswith("stable-environment-with-silence: +0.100")
        assert result.applied_calibration

    def test_minimal_dom_changes_when_network_idle(self):
        finding, obs = _make_pair()
        result = calibrate(finding, obs)
        assert result.calibrated_score == 0.6
        assert result.adjustments[0].startswith("minimal-dom-changes-with-silence: +0.050")

    def test_isolated_network_failures_penalise(self):
        finding, obs = _make_pair(signals={
            "silence_detected": False,
            "network_requests": 10,
            "network_failures": 1,
        })
        result = calibrate(finding, obs)
        assert result.calibrated_score == 0.5
        assert result.adjustments[0].startswith("isolated-network-failures: -0.050")

    def test_penalties_listed_before_boosts(self):
        finding, obs = _make_pair(signals={
            "silence_detected": True,
            "dom_change_count": 25,
            "retry_count": 2,
        })
        result = calibrate(finding, obs)
        assert [a.split(":")[0] for a in result.adjustments] == [
            "adaptive-events-detected",
            "high-dom-activity-with-silence",
        ]
        assert result.calibrated_score == 0.58

    def test_no_rules_leaves_score(self):
        finding, obs = _make_pair(signals={"url_changed": True})
        result = calibrate(finding, obs)
        assert result.calibrated_score == result.original_score
        assert result.adjustments == []
        assert not result.applied_calibration


class TestCalibrationBounds:
    def test_total_adjustment_is_clamped(self):
        finding, obs = _make_pair(signals={
            "silence_detected": True,
            "dom_change_count": 0,
            "network_requests": 2,
        })
        result = calibrate(finding, obs, CalibrationConfig(max_total_adjustment=0.05))
        assert result.calibrated_score == 0.6
        assert result.clamped

    def test_score_never_below_zero(self):
        finding, obs = _make_pair(
            signals={
                "silence_detected": True,
                "dom_change_count": 3,
                "network_requests": 10,
                "network_failures": 5,
                "retry_count": 1,
            },
            timing={"render_delay_ms": 3000},
            evidence_files=[],
        )
        assert finding.confidence.original_score == 0.0
        result = calibrate(finding, obs)
        assert result.calibrated_score == 0.0
        assert len(result.adjustments) == 2
        assert all(":" in a and " -0." in a for a in result.adjustments)


class TestCalibrationScope:
    def test_observed_findings_pass_through(self):
        finding, obs = _make_pair(signals={"silence_detected": True}, observed=True)
        result = calibrate(finding, obs)
        assert not result.applied_calibration
        assert result.calibrated_score == 1.0

    def test_missing_observation_passes_through(self):
        finding, _ = _make_pair()
        result = calibrate(finding, None)
        assert result.calibrated_score == finding.confidence.original_score

    def test_apply_keeps_classification_and_status(self):
        finding, obs = _make_pair()
        calibrated = apply_calibration(finding, obs)
        assert calibrated.classification == finding.classification
        assert calibrated.status == finding.status
        assert calibrated.confidence.original_score == 0.55
        assert calibrated.confidence.calibrated_score == 0.6


class TestCalibrationStats:
    def test_counts(self):
        boosted = apply_calibration(*_make_pair())
        untouched, _ = _make_pair()
        stats = calibration_stats([boosted, untouched])
        assert stats.total_findings == 2
        assert stats.calibrated == 1
        assert stats.increased == 1
        assert stats.unchanged == 1
        assert stats.max_adjustment == 0.05
