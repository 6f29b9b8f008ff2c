"""AI Agents package."""

from finsight.agents.chat import (
    GREETING,
    ChatMessage,
    ChatReply,
    FinancialChatAgent,
)

__all__ = [
    "GREETING",
    "ChatMessage",
    "ChatReply",
    "FinancialChatAgent",
]
