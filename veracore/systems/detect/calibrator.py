"""
VeraCore — Confidence Calibrator

Nudges the evidence-seeded confidence of a finding up or down according to
how stable the runtime environment was when the outcome went missing.

A silent failure on a quiet, stable page is more believable than one on a
page that was still jittering, retrying or rendering late. The rules are
fixed and ordered; their combined adjustment is bounded so that runtime
noise can never outweigh the evidence itself.

Calibration only touches the score. Classification and status are left
exactly as the classifier produced them.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from veracore.config import CalibrationConfig
from veracore.primitives.finding import ClassificationKind, Finding, FindingConfidence, Judgment
from veracore.primitives.observation import Observation
from veracore.systems.detect.types import CalibrationResult, CalibrationRule, CalibrationStats

logger = structlog.get_logger(system="detect", component="calibrator")

CALIBRATED_KINDS: frozenset[ClassificationKind] = frozenset({
    ClassificationKind.SILENT_FAILURE,
    ClassificationKind.UNPROVEN,
    ClassificationKind.COVERAGE_GAP,
})

RULE_ADJUSTMENTS: dict[CalibrationRule, float] = {
    CalibrationRule.STABLE_ENVIRONMENT_WITH_SILENCE: 0.10,
    CalibrationRule.UNSTABLE_ENVIRONMENT_WITH_SILENCE: -0.10,
    CalibrationRule.ADAPTIVE_EVENTS_DETECTED: -0.05,
    CalibrationRule.MINIMAL_DOM_CHANGES_WITH_SILENCE: 0.05,
    CalibrationRule.HIGH_DOM_ACTIVITY_WITH_SILENCE: 0.08,
    CalibrationRule.ISOLATED_NETWORK_FAILURES: -0.05,
}


def is_calibratable(finding: Finding) -> bool:
    return (
        finding.classification.kind in CALIBRATED_KINDS
        or finding.judgment == Judgment.NEEDS_REVIEW
    )


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _fired_rules(
    observation: Observation,
    config: CalibrationConfig,
) -> list[tuple[CalibrationRule, str]]:
    dom_changes = observation.count("dom_change_count", "mutation_count")
    requests = observation.count("network_requests", "network_request_count")
    failures = observation.count("network_failures", "failed_requests")
    retries = observation.count("retry_count", "adaptive_retries")
    adaptive = retries > 0 or observation.flag("adaptive_stabilization")
    render_delay = float(observation.timing.get("render_delay_ms", 0.0) or 0.0)

    if "silence_detected" in observation.signals or "no_feedback" in observation.signals:
        silence = observation.flag("silence_detected", "no_feedback")
    else:
        silence = not observation.flag("url_changed") and not observation.flag("dom_changed")

    stable_dom = dom_changes < config.stable_dom_max_changes
    stable_network = requests > 0 and failures == 0
    failure_rate = failures / requests if requests else 0.0
    jitter = failures > config.jitter_min_failures or failure_rate > config.jitter_failure_rate
    late_render = render_delay > config.late_render_ms

    fired: list[tuple[CalibrationRule, str]] = []

    stable_fired = silence and stable_dom and stable_network
    if stable_fired:
        fired.append((
            CalibrationRule.STABLE_ENVIRONMENT_WITH_SILENCE,
            f"dom changes {dom_changes}, {requests} requests without failures",
        ))

    unstable_fired = silence and jitter and late_render
    if unstable_fired:
        fired.append((
            CalibrationRule.UNSTABLE_ENVIRONMENT_WITH_SILENCE,
            f"{failures} network failures, render delay {render_delay:.0f}ms",
        ))

    if adaptive:
        fired.append((
            CalibrationRule.ADAPTIVE_EVENTS_DETECTED,
            f"{retries} retries" if retries else "adaptive stabilization",
        ))

    if silence and dom_changes < config.minimal_dom_max_changes and not stable_fired:
        fired.append((
            CalibrationRule.MINIMAL_DOM_CHANGES_WITH_SILENCE,
            f"dom changes {dom_changes}",
        ))

    if silence and dom_changes > config.high_dom_min_changes:
        fired.append((
            CalibrationRule.HIGH_DOM_ACTIVITY_WITH_SILENCE,
            f"dom changes {dom_changes} without feedback",
        ))

    if failures > 0 and not jitter and not unstable_fired:
        fired.append((
            CalibrationRule.ISOLATED_NETWORK_FAILURES,
            f"{failures} of {requests} requests failed",
        ))

    return fired


def calibrate(
    finding: Finding,
    observation: Observation | None,
    config: CalibrationConfig | None = None,
) -> CalibrationResult:
    """
    Compute the calibrated confidence for a finding.

    Returns one adjustment string per contributing rule, penalties before
    boosts. Findings outside the calibrated classifications, or without an
    observation to read signals from, pass through unchanged.
    """
    cfg = config or CalibrationConfig()
    original = finding.confidence.original_score

    if observation is None or not is_calibratable(finding):
        return CalibrationResult(original_score=original, calibrated_score=original)

    fired = _fired_rules(observation, cfg)
    if not fired:
        return CalibrationResult(original_score=original, calibrated_score=original)

    # Stable sort: penalties first, rule order preserved within each group
    ordered = sorted(fired, key=lambda item: RULE_ADJUSTMENTS[item[0]] >= 0)
    adjustments = [
        f"{rule.value}: {RULE_ADJUSTMENTS[rule]:+.3f} ({why})" for rule, why in ordered
    ]

    total = sum(RULE_ADJUSTMENTS[rule] for rule, _ in fired)
    bounded = _clamp(total, -cfg.max_total_adjustment, cfg.max_total_adjustment)
    calibrated = round(_clamp(original + bounded, 0.0, 1.0), 3)

    result = CalibrationResult(
        original_score=original,
        calibrated_score=calibrated,
        adjustments=adjustments,
        applied_calibration=True,
        clamped=round(bounded, 6) != round(total, 6),
    )
    logger.debug(
        "confidence_calibrated",
        finding_id=finding.id,
        original=original,
        calibrated=calibrated,
        rules=[rule.value for rule, _ in ordered],
    )
    return result


def apply_calibration(
    finding: Finding,
    observation: Observation | None,
    config: CalibrationConfig | None = None,
) -> Finding:
    """Return a copy of ``finding`` carrying the calibrated confidence block."""
    result = calibrate(finding, observation, config)
    return finding.model_copy(
        update={
            "confidence": FindingConfidence(
                original_score=result.original_score,
                calibrated_score=result.calibrated_score,
                adjustments=result.adjustments,
                applied_calibration=result.applied_calibration,
            )
        }
    )


def calibration_stats(findings: Iterable[Finding]) -> CalibrationStats:
    items = list(findings)
    calibrated = [f for f in items if f.confidence.applied_calibration]
    deltas = [
        round(f.confidence.calibrated_score - f.confidence.original_score, 3)
        for f in calibrated
    ]
    return CalibrationStats(
        total_findings=len(items),
        calibrated=len(calibrated),
        increased=sum(1 for d in deltas if d > 0),
        decreased=sum(1 for d in deltas if d < 0),
        unchanged=len(items) - sum(1 for d in deltas if d != 0),
        average_adjustment=round(sum(abs(d) for d in deltas) / len(deltas), 3) if deltas else 0.0,
        max_adjustment=max((abs(d) for d in deltas), default=0.0),
    )
