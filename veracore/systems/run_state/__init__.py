"""
VeraCore — Run State

Expectation accounting and the COMPLETE / INCOMPLETE / FAILED decision
for a whole run. A run that could not finish its work never reports as
clean.
"""

from veracore.systems.run_state.errors import (
    InvariantViolationError,
    RunStateError,
    RunStateFrozenError,
)
from veracore.systems.run_state.tracker import (
    EXIT_FAILED,
    EXIT_FINDINGS,
    EXIT_INCOMPLETE,
    EXIT_OK,
    RunStateTracker,
    determinism_level,
    exit_code_for,
    summarize_skips,
)
from veracore.systems.run_state.types import (
    SYSTEMIC_SKIP_REASONS,
    AnalysisState,
    DeterminismFactor,
    DeterminismLevel,
    DeterminismRecord,
    RunState,
    SkipReason,
    TimeoutPhase,
)

__all__ = [
    "EXIT_FAILED",
    "EXIT_FINDINGS",
    "EXIT_INCOMPLETE",
    "EXIT_OK",
    "SYSTEMIC_SKIP_REASONS",
    "AnalysisState",
    "DeterminismFactor",
    "DeterminismLevel",
    "DeterminismRecord",
    "InvariantViolationError",
    "RunState",
    "RunStateError",
    "RunStateFrozenError",
    "RunStateTracker",
    "SkipReason",
    "TimeoutPhase",
    "determinism_level",
    "exit_code_for",
    "summarize_skips",
]
