"""AI Agents package."""

from household_ledger.agents.ai_agents import (
    ANALYSIS_UNAVAILABLE,
    ExpenseAgent,
    ExternalServiceUnavailable,
)

__all__ = [
    "ANALYSIS_UNAVAILABLE",
    "ExpenseAgent",
    "ExternalServiceUnavailable",
]
