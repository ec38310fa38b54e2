"""
VeraCore — Verification Run

Wires the systems into one run:

  expectations + observations
      -> DetectService.detect      (classify, calibrate, severity, sort)
      -> DetectService.enforce     (constitution pass)
      -> RunStateTracker           (accounting, contract drops, invariants)
      -> compute_decision          (launch verdict)
      -> RunStateTracker.finalize  (frozen run state)

Expectations skipped before observation (budget, safety, timeouts) are
reported by the caller through ``skipped``; every other discovered
expectation counts as analysed. An accounting invariant violation fails
the run and the first violation is kept as the run error.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from pydantic import Field

from veracore.config import VeraCoreConfig
from veracore.primitives.common import VeraBaseModel
from veracore.primitives.decision import Decision
from veracore.primitives.expectation import Expectation
from veracore.primitives.finding import Finding
from veracore.primitives.observation import Observation
from veracore.primitives.signals import Signals
from veracore.systems.decision import compute_decision
from veracore.systems.detect import DetectService
from veracore.systems.detect.types import DroppedFinding
from veracore.systems.run_state import (
    InvariantViolationError,
    RunState,
    RunStateTracker,
    SkipReason,
)

logger = structlog.get_logger()


class VerificationOutcome(VeraBaseModel):
    findings: list[Finding] = Field(default_factory=list)
    downgraded: int = 0
    dropped: list[DroppedFinding] = Field(default_factory=list)
    decision: Decision
    run_state: RunState


def run_verification(
    expectations: Iterable[Expectation],
    observations: Iterable[Observation],
    signals: Signals | Mapping[str, Any] | None = None,
    *,
    evidence_files: Iterable[str] | None = None,
    skipped: Mapping[str, SkipReason | str] | None = None,
    tracker: RunStateTracker | None = None,
    config: VeraCoreConfig | None = None,
) -> VerificationOutcome:
    cfg = config or VeraCoreConfig()
    run = tracker or RunStateTracker(config=cfg.run_state)
    log = logger.bind(system="pipeline", run_id=run.run_id)
    skipped = skipped or {}

    expectation_list = list(expectations)
    observation_list = list(observations)

    run.record_discovered(e.id for e in expectation_list)

    by_reason: dict[SkipReason, list[str]] = {}
    for exp_id in sorted(skipped):
        by_reason.setdefault(SkipReason.normalize(skipped[exp_id]), []).append(exp_id)
    for reason in sorted(by_reason, key=lambda r: r.value):
        run.record_skip(reason, by_reason[reason])

    to_analyze = [e for e in expectation_list if e.id not in skipped]
    for expectation in to_analyze:
        run.record_analyzed(expectation.id)

    service = DetectService(cfg)
    findings = service.detect(to_analyze, observation_list)
    batch = service.enforce(findings, observation_list, evidence_files)

    run.record_contract_violations(batch.dropped)
    run.record_findings(sum(1 for f in batch.valid if f.classification.is_silent_failure))

    try:
        run.verify_invariants()
    except InvariantViolationError as exc:
        log.error("accounting_invariant_violated", error=str(exc))
        run.mark_failed(exc)

    decision = compute_decision(signals, cfg.decision)
    run_state = run.finalize()

    log.info(
        "verification_complete",
        findings=len(batch.valid),
        downgraded=batch.downgraded,
        state=run_state.state.value,
        verdict=decision.final_verdict.value,
    )
    return VerificationOutcome(
        findings=batch.valid,
        downgraded=batch.downgraded,
        dropped=batch.dropped,
        decision=decision,
        run_state=run_state,
    )
