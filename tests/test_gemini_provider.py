"""Tests for the Gemini provider and chat agent (Gemini client mocked out)."""

import json
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

from finsight.agents import GREETING, ChatMessage, FinancialChatAgent
from finsight.agents.chat import FALLBACK_REPLY
from finsight.config import GeminiSettings
from finsight.errors import MalformedAnalysis, ProviderUnavailable
from finsight.models.budget import BudgetInput, BudgetInputChange, Expense, SavingsGoalType
from finsight.services.provider import GeminiAnalysisProvider
from finsight.services.provider.gemini import build_analysis_prompt, parse_json_object
from finsight.validation import AnalysisNormalizer


@pytest.fixture
def gemini_settings() -> GeminiSettings:
    return GeminiSettings(api_key="test-key")


@pytest.fixture
def fake_model():
    """Stands in for genai.GenerativeModel."""
    with patch("google.generativeai.configure"), \
            patch("google.generativeai.GenerativeModel") as model_class:
        model = MagicMock()
        model.generate_content_async = AsyncMock()
        model_class.return_value = model
        yield model


def respond_with(model, text: str) -> None:
    response = MagicMock()
    response.text = text
    model.generate_content_async.return_value = response


class TestParseJsonObject:
    """Tests for parse_json_object()."""

    def test_plain_object(self):
        assert parse_json_object('{"summary": "ok"}') == {"summary": "ok"}

    def test_code_fence_and_prose(self):
        """Test that text around the object is ignored."""
        text = 'Here you go:\n```json\n{"summary": "ok", "n": 1}\n```\nEnjoy!'
        assert parse_json_object(text) == {"summary": "ok", "n": 1}

    def test_no_object(self):
        with pytest.raises(MalformedAnalysis, match="did not contain"):
            parse_json_object("I cannot help with that.")

    def test_invalid_json(self):
        with pytest.raises(MalformedAnalysis, match="not valid JSON"):
            parse_json_object('{"summary": ok}')


class TestBuildAnalysisPrompt:
    """Tests for build_analysis_prompt()."""

    def test_contains_budget(self, sample_budget):
        prompt = build_analysis_prompt(sample_budget)

        assert "San Francisco" in prompt
        assert "$6,000.00" in prompt
        assert "20% of after-tax income" in prompt
        assert "Rent/Mortgage: $1,500.00" in prompt
        assert '"cashflowAdvice"' in prompt

    def test_unset_values_sent_as_zero(self):
        """Test that unset numbers reach the prompt as 0."""
        budget = BudgetInput(
            city="Austin",
            monthly_pre_tax_income=Decimal("5000"),
            savings_goal_type=SavingsGoalType.FIXED_AMOUNT,
            expenses=[Expense(name="", amount=None)],
        )
        prompt = build_analysis_prompt(budget)

        assert "$0.00 fixed amount" in prompt
        assert "Unnamed: $0.00" in prompt

    def test_no_expenses(self, sample_budget):
        budget = sample_budget.apply_change(BudgetInputChange(expenses=[]))
        assert "Listed monthly expenses: None" in build_analysis_prompt(budget)


class TestGeminiAnalysisProvider:
    """Tests for GeminiAnalysisProvider."""

    @pytest.mark.asyncio
    async def test_returns_parsed_payload(
        self, fake_model, gemini_settings, sample_budget, valid_payload
    ):
        """Test that the JSON response is parsed and normalizes cleanly."""
        respond_with(fake_model, json.dumps(valid_payload))
        provider = GeminiAnalysisProvider(settings=gemini_settings)

        raw = await provider.analyze(sample_budget)

        assert raw == valid_payload
        analysis = AnalysisNormalizer(Decimal("1")).normalize(raw, Decimal("6000"))
        assert analysis.tax_breakdown.total == Decimal("1250")

    @pytest.mark.asyncio
    async def test_request_failure(self, fake_model, gemini_settings, sample_budget):
        """Test that a failed call is reported as ProviderUnavailable."""
        fake_model.generate_content_async.side_effect = RuntimeError("quota exceeded")
        provider = GeminiAnalysisProvider(settings=gemini_settings)

        with pytest.raises(ProviderUnavailable, match="quota exceeded"):
            await provider.analyze(sample_budget)

    @pytest.mark.asyncio
    async def test_non_json_response(self, fake_model, gemini_settings, sample_budget):
        respond_with(fake_model, "Sorry, no.")
        provider = GeminiAnalysisProvider(settings=gemini_settings)

        with pytest.raises(MalformedAnalysis):
            await provider.analyze(sample_budget)


class TestFinancialChatAgent:
    """Tests for the stateless chat agent."""

    @pytest.fixture
    def analysis(self, normalizer, valid_payload):
        return normalizer.normalize(valid_payload, Decimal("6000"))

    def test_build_contents(self, analysis):
        """Test that the context, greeting and history are replayed in order."""
        history = [
            ChatMessage(author="user", text="Can I afford a car?"),
            ChatMessage(author="ai", text="Maybe a used one."),
        ]

        contents = FinancialChatAgent.build_contents(analysis, "How about rent?", history)

        assert [c["role"] for c in contents] == ["user", "model", "user", "model", "user"]
        assert '"disposable_income"' in contents[0]["parts"][0]
        assert contents[1]["parts"] == [GREETING]
        assert contents[-1]["parts"] == ["How about rent?"]

    @pytest.mark.asyncio
    async def test_send(self, fake_model, gemini_settings, analysis):
        respond_with(fake_model, "  Cut dining out.  ")
        agent = FinancialChatAgent(settings=gemini_settings)

        reply = await agent.send(analysis, "Where can I save?")

        assert reply.ok is True
        assert reply.text == "Cut dining out."

    @pytest.mark.asyncio
    async def test_send_failure_returns_fallback(self, fake_model, gemini_settings, analysis):
        """Test that chat errors never reach the caller."""
        fake_model.generate_content_async.side_effect = RuntimeError("boom")
        agent = FinancialChatAgent(settings=gemini_settings)

        reply = await agent.send(analysis, "Where can I save?")

        assert reply.ok is False
        assert reply.text == FALLBACK_REPLY


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
