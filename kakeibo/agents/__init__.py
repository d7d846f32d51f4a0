"""AI Agents package."""

from kakeibo.agents.ai_agents import (
    AgentError,
    AIUnavailableError,
    ReceiptAnalysisError,
    ReceiptScannerAgent,
    SalesInfoAgent,
    SalesInfoError,
    SavingsAdvisorAgent,
    unavailable_message,
)

__all__ = [
    "AgentError",
    "AIUnavailableError",
    "ReceiptAnalysisError",
    "ReceiptScannerAgent",
    "SalesInfoAgent",
    "SalesInfoError",
    "SavingsAdvisorAgent",
    "unavailable_message",
]
