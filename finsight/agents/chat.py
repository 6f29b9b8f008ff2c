"""
Financial Chat Agent

Answers follow-up questions about one analysis.

DESIGN DECISION: The agent is stateless: send(context, message) → reply.
The caller owns the transcript and passes it back in on every call,
so nothing in the core depends on a provider-side chat session.

BOUNDARIES:
- CAN: Explain the analysis, brainstorm savings, suggest general options
- MUST: Use the user's analysis as the primary context
- NEVER: Raises to the UI; a failed call returns a fallback reply
"""

import json
from typing import Literal, Optional, Sequence

import google.generativeai as genai
import structlog
from pydantic import BaseModel, Field

from finsight.config import GeminiSettings, get_settings
from finsight.models.budget import BudgetAnalysis


GREETING = (
    "Hello! I've reviewed your financial analysis. "
    "How can I help you brainstorm or clarify your budget?"
)
FALLBACK_REPLY = "Sorry, I encountered an error. Please try again."


class ChatMessage(BaseModel):
    """One line of the transcript."""

    author: Literal["user", "ai"]
    text: str = Field(..., min_length=1)


class ChatReply(BaseModel):
    """The agent's answer to one message."""

    text: str
    ok: bool = Field(
        default=True,
        description="False when the text is the fallback after a failed call"
    )


def build_context_prompt(analysis: BudgetAnalysis) -> str:
    """Opening instruction carrying the analysis as JSON."""
    data = json.dumps(analysis.model_dump(mode="json"), indent=2)
    return f"""You are an expert financial assistant inside a personal budgeting app.
The user's financial analysis is below. Answer their questions, help them
brainstorm solutions and give actionable advice. Use their data as the
primary context. Be encouraging, concise and helpful.

Here is the user's financial data:
{data}"""


class FinancialChatAgent:
    """Gemini-backed, stateless chat about a BudgetAnalysis."""

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._logger = structlog.get_logger("finsight.chat")
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.chat_temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    @staticmethod
    def build_contents(
        analysis: BudgetAnalysis,
        message: str,
        history: Sequence[ChatMessage] = (),
    ) -> list[dict]:
        """Assemble the full conversation sent on every call."""
        contents = [
            {"role": "user", "parts": [build_context_prompt(analysis)]},
            {"role": "model", "parts": [GREETING]},
        ]
        for item in history:
            role = "user" if item.author == "user" else "model"
            contents.append({"role": role, "parts": [item.text]})
        contents.append({"role": "user", "parts": [message]})
        return contents

    async def send(
        self,
        analysis: BudgetAnalysis,
        message: str,
        history: Sequence[ChatMessage] = (),
    ) -> ChatReply:
        """
        Answer one message in the context of an analysis.

        Args:
            analysis: The analysis the conversation is about
            message: The user's new message
            history: Earlier messages, oldest first, without the greeting
        """
        contents = self.build_contents(analysis, message, history)

        try:
            response = await self._model.generate_content_async(contents)
            return ChatReply(text=response.text.strip())
        except Exception as e:
            self._logger.warning("chat_failed", error=str(e))
            return ChatReply(text=FALLBACK_REPLY, ok=False)
