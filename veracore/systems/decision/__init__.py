"""
VeraCore — Decision

The single launch-verdict authority. All verdict precedence lives here.
"""

from veracore.systems.decision.authority import (
    EXIT_CODES,
    RESOLVER_CHAIN,
    VERDICT_RANK,
    Resolution,
    compute_decision,
    informational_reasons,
    refine_with_coverage,
    refine_with_journey,
    resolve_failures,
    resolve_observed,
    resolve_policy,
    resolve_rules_engine,
)

__all__ = [
    "EXIT_CODES",
    "RESOLVER_CHAIN",
    "VERDICT_RANK",
    "Resolution",
    "compute_decision",
    "informational_reasons",
    "refine_with_coverage",
    "refine_with_journey",
    "resolve_failures",
    "resolve_observed",
    "resolve_policy",
    "resolve_rules_engine",
]
