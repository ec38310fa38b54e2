"""
VeraCore — Run State Tracker

Accounts for every discovered expectation independently of findings, and
decides whether a run is COMPLETE, INCOMPLETE or FAILED.

The tracker accumulates while the run is in flight. ``finalize()`` resolves
the final state once and freezes it; the returned RunState is immutable and
later record calls raise RunStateFrozenError.

Exit codes:
  ANALYSIS_FAILED      -> 2
  ANALYSIS_INCOMPLETE  -> 66
  ANALYSIS_COMPLETE    -> 1 when silent failures were found, else 0
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from veracore.config import RunStateConfig
from veracore.primitives.common import new_id
from veracore.systems.run_state.errors import InvariantViolationError, RunStateFrozenError
from veracore.systems.run_state.types import (
    CONTROLLED_FACTORS,
    NON_DETERMINISTIC_FACTORS,
    SYSTEMIC_SKIP_REASONS,
    TIMEOUT_SKIP_REASONS,
    AnalysisState,
    DeterminismComparison,
    DeterminismFactor,
    DeterminismLevel,
    DeterminismRecord,
    RunState,
    SkipReason,
    TimeoutPhase,
)

logger = structlog.get_logger()

EXIT_FAILED = 2
EXIT_INCOMPLETE = 66
EXIT_FINDINGS = 1
EXIT_OK = 0


def exit_code_for(state: AnalysisState, findings_count: int) -> int:
    if state == AnalysisState.ANALYSIS_FAILED:
        return EXIT_FAILED
    if state == AnalysisState.ANALYSIS_INCOMPLETE:
        return EXIT_INCOMPLETE
    return EXIT_FINDINGS if findings_count > 0 else EXIT_OK


def determinism_level(factors: Iterable[DeterminismFactor]) -> DeterminismLevel:
    present = set(factors)
    if present & NON_DETERMINISTIC_FACTORS:
        return DeterminismLevel.NON_DETERMINISTIC
    if present & CONTROLLED_FACTORS:
        return DeterminismLevel.CONTROLLED_NON_DETERMINISTIC
    return DeterminismLevel.DETERMINISTIC


class RunStateTracker:
    """
    Single source of truth for run completeness.

    Invariants (checked by ``verify_invariants``):
      - analysed + skipped == discovered
      - no expectation is both analysed and skipped
      - every analysed or skipped id was discovered
    """

    def __init__(self, run_id: str | None = None, config: RunStateConfig | None = None) -> None:
        self.run_id = run_id or new_id()
        self._config = config or RunStateConfig()
        self._logger = logger.bind(system="run_state", run_id=self.run_id)

        self._state = AnalysisState.ANALYSIS_COMPLETE
        self._discovered: set[str] = set()
        self._analyzed: set[str] = set()
        self._skipped: dict[str, SkipReason] = {}
        self._skip_counts: dict[SkipReason, int] = {}
        self._skip_examples: dict[SkipReason, list[str]] = {}
        self._findings_count = 0
        self._contract_violations: list[dict[str, Any]] = []
        self._error: str | None = None
        self._warnings: list[str] = []
        self._factors: list[DeterminismFactor] = []
        self._determinism_notes: list[str] = []
        self._comparison: DeterminismComparison | None = None
        self._final: RunState | None = None

    # ─── Queries ─────────────────────────────────────────────────

    @property
    def state(self) -> AnalysisState:
        return self._state

    @property
    def is_finalized(self) -> bool:
        return self._final is not None

    @property
    def skip_reasons(self) -> dict[SkipReason, int]:
        return dict(self._skip_counts)

    def completeness_ratio(self) -> float:
        if not self._discovered:
            return 1.0
        return round(len(self._analyzed) / len(self._discovered), 4)

    # ─── Recording ───────────────────────────────────────────────

    def _ensure_open(self) -> None:
        if self._final is not None:
            raise RunStateFrozenError(f"run {self.run_id} is already finalized")

    def record_discovered(self, expectation_ids: Iterable[str]) -> None:
        self._ensure_open()
        self._discovered.update(expectation_ids)

    def record_analyzed(self, expectation_id: str) -> None:
        self._ensure_open()
        self._analyzed.add(expectation_id)

    def record_skip(
        self,
        reason: SkipReason | str,
        expectation_ids: Iterable[str] = (),
        count: int | None = None,
    ) -> SkipReason:
        """
        Record skipped expectations under a reason. Unknown reason strings
        normalise to UNKNOWN. ``count`` covers skips with no per-id record,
        such as a phase timeout.
        """
        self._ensure_open()
        normalized = SkipReason.normalize(reason)
        ids = list(expectation_ids)

        for exp_id in ids:
            self._skipped[exp_id] = normalized

        increment = count if count is not None else (len(ids) or 1)
        self._skip_counts[normalized] = self._skip_counts.get(normalized, 0) + increment

        examples = self._skip_examples.setdefault(normalized, [])
        for exp_id in ids:
            if len(examples) >= self._config.max_skip_examples:
                break
            if exp_id not in examples:
                examples.append(exp_id)

        if normalized in SYSTEMIC_SKIP_REASONS and self._state != AnalysisState.ANALYSIS_FAILED:
            self._state = AnalysisState.ANALYSIS_INCOMPLETE

        self._logger.debug("expectations_skipped", reason=normalized.value, count=increment)
        return normalized

    def record_timeout(self, phase: TimeoutPhase | str, expectation_ids: Iterable[str] = ()) -> None:
        timeout_phase = TimeoutPhase(phase)
        reason = TIMEOUT_SKIP_REASONS[timeout_phase]
        self.record_skip(reason, expectation_ids)
        self._warnings.append(f"{timeout_phase.value} phase timed out")
        self.record_determinism_factor(DeterminismFactor.TIMEOUT_RISK, f"{timeout_phase.value} timeout")
        self._logger.warning("phase_timeout", phase=timeout_phase.value)

    def record_budget_exceeded(self, expectation_ids: Iterable[str] = (), detail: str = "") -> None:
        self.record_skip(SkipReason.BUDGET_EXCEEDED, expectation_ids)
        self._warnings.append(f"budget exceeded{': ' + detail if detail else ''}")
        self._logger.warning("budget_exceeded", detail=detail)

    def record_contract_violations(self, dropped: Iterable[Any]) -> None:
        """
        Record findings dropped by contract enforcement. Any drop fails the
        run; the first violation is kept as the run error.
        """
        self._ensure_open()
        violations = [
            item.model_dump() if hasattr(item, "model_dump") else dict(item)
            for item in dropped
        ]
        if not violations:
            return
        self._contract_violations.extend(violations)
        first = violations[0]
        self.mark_failed(
            f"contract violation: finding {first.get('id', '?')} dropped ({first.get('reason', '')})"
        )

    def record_findings(self, count: int) -> None:
        self._ensure_open()
        self._findings_count = count

    def record_determinism_factor(self, factor: DeterminismFactor | str, note: str = "") -> None:
        self._ensure_open()
        parsed = DeterminismFactor(factor)
        if parsed not in self._factors:
            self._factors.append(parsed)
        if note:
            self._determinism_notes.append(note)

    def record_comparison(self, baseline_run_id: str, identical: bool, difference_count: int = 0) -> None:
        self._ensure_open()
        self._comparison = DeterminismComparison(
            baseline_run_id=baseline_run_id,
            identical=identical,
            difference_count=difference_count,
        )

    def mark_failed(self, error: BaseException | str) -> None:
        """Force ANALYSIS_FAILED. The first error recorded is retained."""
        self._ensure_open()
        message = str(error)
        if self._error is None:
            self._error = message
        self._state = AnalysisState.ANALYSIS_FAILED
        self._logger.error("run_failed", error=message)

    # ─── Invariants ──────────────────────────────────────────────

    def verify_invariants(self) -> None:
        analyzed = self._analyzed
        skipped = set(self._skipped)
        discovered = len(self._discovered)

        overlap = analyzed & skipped
        if overlap:
            raise InvariantViolationError(
                f"expectations both analyzed and skipped: {sorted(overlap)[:5]}"
            )
        if len(analyzed) + len(skipped) != discovered:
            raise InvariantViolationError(
                f"analyzed ({len(analyzed)}) + skipped ({len(skipped)}) "
                f"!= discovered ({discovered})"
            )
        unknown = (analyzed | skipped) - self._discovered
        if unknown:
            raise InvariantViolationError(
                f"expectations accounted for but never discovered: {sorted(unknown)[:5]}"
            )

    # ─── Finalisation ────────────────────────────────────────────

    def _resolve_state(self) -> AnalysisState:
        if self._state == AnalysisState.ANALYSIS_FAILED:
            return AnalysisState.ANALYSIS_FAILED

        if not self._discovered:
            if self._state == AnalysisState.ANALYSIS_COMPLETE:
                return AnalysisState.ANALYSIS_COMPLETE
            if not self._skip_counts:
                self._skip_counts[SkipReason.NO_EXPECTATIONS_EXTRACTED] = 1
            return AnalysisState.ANALYSIS_INCOMPLETE

        if any(reason in SYSTEMIC_SKIP_REASONS for reason in self._skip_counts):
            return AnalysisState.ANALYSIS_INCOMPLETE

        if self._contract_violations:
            return AnalysisState.ANALYSIS_FAILED

        return AnalysisState.ANALYSIS_COMPLETE

    def snapshot(self, state: AnalysisState | None = None) -> RunState:
        """Serialisable view of the tracker. Does not freeze it."""
        resolved = state or self._state
        reasons = sorted(self._skip_counts, key=lambda r: r.value)
        level = determinism_level(self._factors)
        reproducible: bool | None = None
        if self._comparison is not None:
            reproducible = (
                self._comparison.identical
                and level != DeterminismLevel.NON_DETERMINISTIC
            )

        return RunState(
            run_id=self.run_id,
            state=resolved,
            exit_code=exit_code_for(resolved, self._findings_count),
            expectations_discovered=len(self._discovered),
            expectations_analyzed=len(self._analyzed),
            expectations_skipped=len(self._skipped),
            findings_count=self._findings_count,
            completeness_ratio=self.completeness_ratio(),
            skip_reasons={r.value: self._skip_counts[r] for r in reasons},
            skip_examples={
                r.value: list(self._skip_examples[r])
                for r in reasons
                if self._skip_examples.get(r)
            },
            systemic_reasons=[r.value for r in reasons if r in SYSTEMIC_SKIP_REASONS],
            non_systemic_reasons=[r.value for r in reasons if r not in SYSTEMIC_SKIP_REASONS],
            analyzed_expectations=sorted(self._analyzed),
            skipped_expectations={k: self._skipped[k].value for k in sorted(self._skipped)},
            contract_violations=list(self._contract_violations),
            error=self._error,
            warnings=list(self._warnings),
            determinism=DeterminismRecord(
                level=level,
                factors=sorted(self._factors, key=lambda f: f.value),
                notes=list(self._determinism_notes),
                comparison=self._comparison,
                reproducible=reproducible,
            ),
        )

    def finalize(self) -> RunState:
        """Resolve the final state once. Repeated calls return the same snapshot."""
        if self._final is not None:
            return self._final

        self._state = self._resolve_state()
        self._final = self.snapshot(self._state)
        self._logger.info(
            "run_finalized",
            state=self._final.state.value,
            exit_code=self._final.exit_code,
            discovered=self._final.expectations_discovered,
            analyzed=self._final.expectations_analyzed,
            skipped=self._final.expectations_skipped,
        )
        return self._final

    def exit_code(self) -> int:
        if self._final is not None:
            return self._final.exit_code
        return exit_code_for(self._state, self._findings_count)


def summarize_skips(run_state: RunState) -> Mapping[str, Any]:
    """Compact skip breakdown for reports: systemic vs non-systemic with counts."""
    return {
        "systemic": {r: run_state.skip_reasons[r] for r in run_state.systemic_reasons},
        "non_systemic": {r: run_state.skip_reasons[r] for r in run_state.non_systemic_reasons},
        "examples": run_state.skip_examples,
        "completeness_ratio": run_state.completeness_ratio,
    }
