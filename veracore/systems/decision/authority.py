"""
VeraCore — Decision Authority

The single authority that folds run signals into one launch verdict
(READY / FRICTION / DO_NOT_LAUNCH) with an exit code, sorted reasons and
a step-by-step audit trail.

Resolution is a first-match-wins chain of pure resolvers:

  1. Rules engine     - if a rules engine produced a verdict, it is final
  2. Failures         - any failed flow or executed attempt -> DO_NOT_LAUNCH
  3. Policy           - a failed policy with a hard-fail code -> DO_NOT_LAUNCH
  4. Observed         - successes -> READY, friction only -> FRICTION,
                        nothing applicable -> INSUFFICIENT_DATA

Step 4's result may then be refined, only downward: READY with executed
coverage below the threshold becomes FRICTION, and a worse journey
verdict replaces the outcome.
Baseline regressions, not-applicable counts, soft policy warnings and the
coverage summary are reported as reasons and never change the verdict.

Every evaluated step appends to verdict_history. Apart from those
timestamps, repeated calls on the same signals produce identical output.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

import structlog
from pydantic import Field, ValidationError

from veracore.config import DecisionConfig
from veracore.primitives.common import Verdict, VeraBaseModel, utc_now
from veracore.primitives.decision import (
    Decision,
    DecisionReason,
    ReasonCode,
    VerdictHistoryEntry,
    VerdictSource,
)
from veracore.primitives.signals import CoverageSummary, Outcome, Signals

logger = structlog.get_logger()

VERDICT_RANK: dict[Verdict, int] = {
    Verdict.READY: 0,
    Verdict.FRICTION: 1,
    Verdict.DO_NOT_LAUNCH: 2,
}

EXIT_CODES: dict[Verdict, int] = {
    Verdict.READY: 0,
    Verdict.FRICTION: 0,
    Verdict.DO_NOT_LAUNCH: 2,
}


class Resolution(VeraBaseModel):
    """What a resolver concluded. ``refinable`` lets the refinement steps act on it."""

    verdict: Verdict
    source: VerdictSource
    reason_code: ReasonCode
    reasons: list[DecisionReason] = Field(default_factory=list)
    confidence: float
    refinable: bool = False
    triggered_rule_ids: list[str] = Field(default_factory=list)


Resolver = Callable[[Signals, DecisionConfig], Resolution | None]


def _reason(code: ReasonCode, message: str) -> DecisionReason:
    return DecisionReason(code=code, message=message)


def _ids(items: list[str]) -> str:
    return ", ".join(sorted(items))


# ─── Resolvers ────────────────────────────────────────────────────


def resolve_rules_engine(signals: Signals, config: DecisionConfig) -> Resolution | None:
    output = signals.rules_engine_output
    if output is None:
        return None
    reasons = [_reason(ReasonCode.RULES_ENGINE, r) for r in output.reasons] or [
        _reason(ReasonCode.RULES_ENGINE, f"rules engine verdict {output.final_verdict.value}")
    ]
    return Resolution(
        verdict=output.final_verdict,
        source=VerdictSource.RULES_ENGINE,
        reason_code=ReasonCode.RULES_ENGINE,
        reasons=reasons,
        confidence=config.rules_engine_confidence,
        triggered_rule_ids=sorted(output.triggered_rule_ids),
    )


def resolve_failures(signals: Signals, config: DecisionConfig) -> Resolution | None:
    failed_flows = [f.flow_id for f in signals.flows if f.outcome == Outcome.FAILURE]
    failed_attempts = [
        a.attempt_id
        for a in signals.attempts
        if a.executed and a.outcome == Outcome.FAILURE
    ]
    if not failed_flows and not failed_attempts:
        return None

    reasons: list[DecisionReason] = []
    if failed_flows:
        reasons.append(_reason(
            ReasonCode.FLOW_FAILURES,
            f"{len(failed_flows)} flow(s) failed: {_ids(failed_flows)}",
        ))
    if failed_attempts:
        reasons.append(_reason(
            ReasonCode.ATTEMPT_FAILURES,
            f"{len(failed_attempts)} attempt(s) failed: {_ids(failed_attempts)}",
        ))

    if failed_flows:
        source, code = VerdictSource.FLOWS_FAILURE, ReasonCode.FLOW_FAILURES
    else:
        source, code = VerdictSource.ATTEMPTS_FAILURE, ReasonCode.ATTEMPT_FAILURES
    return Resolution(
        verdict=Verdict.DO_NOT_LAUNCH,
        source=source,
        reason_code=code,
        reasons=reasons,
        confidence=config.default_confidence,
    )


def resolve_policy(signals: Signals, config: DecisionConfig) -> Resolution | None:
    policy = signals.policy_eval
    if policy is None or policy.passed:
        return None
    if policy.exit_code not in config.policy_hard_fail_exit_codes:
        return None
    summary = policy.summary or f"policy evaluation exited with code {policy.exit_code}"
    return Resolution(
        verdict=Verdict.DO_NOT_LAUNCH,
        source=VerdictSource.POLICY_HARD_FAIL,
        reason_code=ReasonCode.POLICY_HARD_FAILURE,
        reasons=[_reason(ReasonCode.POLICY_HARD_FAILURE, summary)],
        confidence=config.default_confidence,
    )


def resolve_observed(signals: Signals, config: DecisionConfig) -> Resolution:
    flows = [f for f in signals.flows if f.outcome != Outcome.NOT_APPLICABLE]
    attempts = [
        a for a in signals.attempts
        if a.executed and a.outcome != Outcome.NOT_APPLICABLE
    ]

    if not flows and not attempts:
        return Resolution(
            verdict=Verdict.DO_NOT_LAUNCH,
            source=VerdictSource.INSUFFICIENT_DATA,
            reason_code=ReasonCode.NO_APPLICABLE_SIGNALS,
            reasons=[_reason(
                ReasonCode.NO_APPLICABLE_SIGNALS,
                "no applicable flows or attempts were executed",
            )],
            confidence=config.insufficient_data_confidence,
            refinable=True,
        )

    friction_flows = [f.flow_id for f in flows if f.outcome == Outcome.FRICTION]
    friction_attempts = [a.attempt_id for a in attempts if a.outcome == Outcome.FRICTION]
    successes = sum(1 for f in flows if f.outcome == Outcome.SUCCESS) + sum(
        1 for a in attempts if a.outcome == Outcome.SUCCESS
    )

    friction_reasons: list[DecisionReason] = []
    if friction_flows:
        friction_reasons.append(_reason(
            ReasonCode.FLOW_FRICTION,
            f"{len(friction_flows)} flow(s) reported friction: {_ids(friction_flows)}",
        ))
    if friction_attempts:
        friction_reasons.append(_reason(
            ReasonCode.ATTEMPT_FRICTION,
            f"{len(friction_attempts)} attempt(s) reported friction: {_ids(friction_attempts)}",
        ))

    # Friction alongside at least one success still resolves READY
    if successes:
        return Resolution(
            verdict=Verdict.READY,
            source=VerdictSource.OBSERVED,
            reason_code=ReasonCode.OBSERVED_SUCCESS,
            reasons=[
                _reason(ReasonCode.OBSERVED_SUCCESS, f"{successes} flow(s)/attempt(s) succeeded"),
                *friction_reasons,
            ],
            confidence=config.default_confidence,
            refinable=True,
        )

    source = VerdictSource.FLOWS_FRICTION if friction_flows else VerdictSource.ATTEMPTS_FRICTION
    code = ReasonCode.FLOW_FRICTION if friction_flows else ReasonCode.ATTEMPT_FRICTION
    return Resolution(
        verdict=Verdict.FRICTION,
        source=source,
        reason_code=code,
        reasons=friction_reasons,
        confidence=config.default_confidence,
        refinable=True,
    )


RESOLVER_CHAIN: tuple[tuple[str, Resolver], ...] = (
    ("rules_engine", resolve_rules_engine),
    ("failures", resolve_failures),
    ("policy", resolve_policy),
    ("observed", resolve_observed),
)


def refine_with_coverage(
    resolution: Resolution,
    coverage: CoverageSummary | None,
    config: DecisionConfig,
) -> Resolution:
    """READY with too little of the plan executed becomes FRICTION."""
    if resolution.verdict != Verdict.READY or coverage is None or not coverage.total:
        return resolution
    if coverage.ratio >= config.coverage_threshold:
        return resolution
    return resolution.model_copy(update={
        "verdict": Verdict.FRICTION,
        "source": VerdictSource.COVERAGE_DOWNGRADE,
        "reason_code": ReasonCode.COVERAGE_INSUFFICIENT,
        "reasons": [
            *resolution.reasons,
            _reason(
                ReasonCode.COVERAGE_INSUFFICIENT,
                f"coverage {coverage.ratio * 100:.1f}% below "
                f"{config.coverage_threshold * 100:.0f}% threshold",
            ),
        ],
    })


def refine_with_journey(
    resolution: Resolution,
    journey: Verdict | None,
    config: DecisionConfig,
) -> Resolution:
    """Journey verdicts may only make the outcome worse, and cap confidence."""
    if journey is None or VERDICT_RANK[journey] <= VERDICT_RANK[resolution.verdict]:
        return resolution
    return resolution.model_copy(update={
        "verdict": journey,
        "source": VerdictSource.JOURNEY_DOWNGRADE,
        "reason_code": ReasonCode.JOURNEY_DOWNGRADE,
        "reasons": [
            *resolution.reasons,
            _reason(
                ReasonCode.JOURNEY_DOWNGRADE,
                f"journey verdict {journey.value} downgraded {resolution.verdict.value}",
            ),
        ],
        "confidence": min(resolution.confidence, config.journey_confidence_cap),
    })


def informational_reasons(signals: Signals, config: DecisionConfig) -> list[DecisionReason]:
    reasons: list[DecisionReason] = []

    if signals.baseline is not None and signals.baseline.has_regressions:
        reasons.append(_reason(
            ReasonCode.BASELINE_REGRESSIONS,
            f"{len(signals.baseline.regressions)} baseline regression(s): "
            f"{_ids(list(signals.baseline.regressions))}",
        ))

    na_flows = [f.flow_id for f in signals.flows if f.outcome == Outcome.NOT_APPLICABLE]
    if na_flows:
        reasons.append(_reason(
            ReasonCode.NOT_APPLICABLE_FLOWS,
            f"{len(na_flows)} flow(s) not applicable: {_ids(na_flows)}",
        ))

    na_attempts = [a.attempt_id for a in signals.attempts if a.outcome == Outcome.NOT_APPLICABLE]
    if na_attempts:
        reasons.append(_reason(
            ReasonCode.NOT_APPLICABLE_ATTEMPTS,
            f"{len(na_attempts)} attempt(s) not applicable: {_ids(na_attempts)}",
        ))

    policy = signals.policy_eval
    if (
        policy is not None
        and not policy.passed
        and policy.exit_code in config.policy_warning_exit_codes
    ):
        reasons.append(_reason(
            ReasonCode.POLICY_WARNING,
            policy.summary or f"policy evaluation warned with code {policy.exit_code}",
        ))

    if signals.coverage is not None and signals.coverage.total:
        reasons.append(_reason(
            ReasonCode.COVERAGE_SUMMARY,
            f"coverage {signals.coverage.executed}/{signals.coverage.total}",
        ))

    return reasons


# ─── Authority ────────────────────────────────────────────────────


def _coerce_signals(raw: Signals | Mapping[str, Any] | None) -> tuple[Signals, list[DecisionReason]]:
    if isinstance(raw, Signals):
        return raw, []
    if raw is None:
        return Signals(), []
    try:
        return Signals.model_validate(raw), []
    except ValidationError as exc:
        logger.warning("decision_signals_malformed", errors=exc.error_count())
        return Signals(), [_reason(
            ReasonCode.SIGNALS_MALFORMED,
            f"signal bundle rejected with {exc.error_count()} validation error(s)",
        )]


def compute_decision(
    signals: Signals | Mapping[str, Any] | None,
    config: DecisionConfig | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> Decision:
    """
    Fold run signals into the final launch decision.

    Never raises on partial or malformed signals: missing collections are
    empty, and a bundle that fails validation is treated as empty with a
    SIGNALS_MALFORMED reason.
    """
    cfg = config or DecisionConfig()
    bundle, extra_reasons = _coerce_signals(signals)
    history: list[VerdictHistoryEntry] = []

    resolution: Resolution | None = None
    for phase, resolver in RESOLVER_CHAIN:
        resolution = resolver(bundle, cfg)
        history.append(VerdictHistoryEntry(
            phase=phase,
            source=resolution.source.value if resolution else phase,
            suggested_verdict=resolution.verdict if resolution else None,
            reason_code=resolution.reason_code if resolution else ReasonCode.NOT_TRIGGERED,
            timestamp=clock(),
        ))
        if resolution is not None:
            break

    # resolve_observed always resolves, so the chain cannot fall through
    assert resolution is not None

    if resolution.refinable:
        refined = refine_with_coverage(resolution, bundle.coverage, cfg)
        history.append(VerdictHistoryEntry(
            phase="coverage",
            source=(
                VerdictSource.COVERAGE_DOWNGRADE.value
                if refined is not resolution
                else "coverage"
            ),
            suggested_verdict=refined.verdict if refined is not resolution else None,
            reason_code=(
                ReasonCode.COVERAGE_INSUFFICIENT
                if refined is not resolution
                else ReasonCode.NOT_TRIGGERED
            ),
            timestamp=clock(),
        ))
        resolution = refined

        refined = refine_with_journey(resolution, bundle.journey_verdict, cfg)
        history.append(VerdictHistoryEntry(
            phase="journey",
            source=(
                VerdictSource.JOURNEY_DOWNGRADE.value
                if refined is not resolution
                else "journey"
            ),
            suggested_verdict=bundle.journey_verdict,
            reason_code=(
                ReasonCode.JOURNEY_DOWNGRADE
                if refined is not resolution
                else ReasonCode.NOT_TRIGGERED
            ),
            timestamp=clock(),
        ))
        resolution = refined

    reasons = sorted(
        [*resolution.reasons, *informational_reasons(bundle, cfg), *extra_reasons],
        key=lambda r: r.sort_key,
    )

    history.append(VerdictHistoryEntry(
        phase="normalization",
        source=resolution.source.value,
        suggested_verdict=resolution.verdict,
        reason_code=ReasonCode.FINALIZED,
        timestamp=clock(),
    ))

    decision = Decision(
        final_verdict=resolution.verdict,
        exit_code=EXIT_CODES[resolution.verdict],
        reasons=reasons,
        confidence=resolution.confidence,
        verdict_source=resolution.source,
        verdict_history=history,
        triggered_rule_ids=resolution.triggered_rule_ids,
    )

    logger.info(
        "decision_computed",
        system="decision",
        verdict=decision.final_verdict.value,
        source=decision.verdict_source.value,
        exit_code=decision.exit_code,
        reasons=len(decision.reasons),
    )
    return decision
