"""
Gemini Analysis Provider

Asks Gemini for a structured budget analysis and returns the parsed JSON.

BOUNDARIES:
- CAN: Estimate taxes, totals, savings and write advice
- CANNOT: Be trusted with arithmetic we can check ourselves
  (AnalysisNormalizer recomputes the tax total and after-tax income)
- NEVER: Returns a default analysis on failure; errors are raised
"""

import json
from typing import Optional

import google.generativeai as genai

from finsight.config import GeminiSettings, get_settings
from finsight.errors import MalformedAnalysis, ProviderUnavailable
from finsight.models.budget import BudgetInput, SavingsGoalType
from finsight.services.provider.interface import AnalysisProvider


RESPONSE_FIELDS = """{
  "summary": "one encouraging paragraph about the user's situation",
  "taxBreakdown": {"federal": 0, "state": 0, "other": 0, "total": 0},
  "calculatedAfterTaxIncome": 0,
  "totalExpenses": 0,
  "savingsAmount": 0,
  "disposableIncome": 0,
  "recommendations": ["3-5 saving tips specific to the city"],
  "cashflowAdvice": ["2-3 tips to improve cash flow"]
}"""


def build_analysis_prompt(budget: BudgetInput) -> str:
    """Render the budget as the analysis request text."""
    payload = budget.submission_payload()

    expenses = ", ".join(
        f"{item['name'] or 'Unnamed'}: ${item['amount']:,.2f}"
        for item in payload["expenses"]
    ) or "None"

    goal_value = payload["savingsGoal"]["value"]
    if budget.savings_goal_type == SavingsGoalType.PERCENTAGE:
        savings_goal = f"{goal_value:g}% of after-tax income"
    else:
        savings_goal = f"${goal_value:,.2f} fixed amount"

    return f"""You are a financial assistant creating a personal monthly budget analysis.

User's data:
- City: {payload['city']}
- Monthly pre-tax income: ${payload['monthlyPreTaxIncome']:,.2f}
- Monthly savings goal: {savings_goal}
- Listed monthly expenses: {expenses}

Steps:
1. Estimate monthly taxes for this city and income: federal, state, and other
   (FICA, local). Subtract the total from the pre-tax income to get the
   after-tax income.
2. Using the after-tax income, calculate total expenses, the savings amount
   for the goal, and the disposable income left after expenses and savings.
3. Write a short summary, 3-5 saving recommendations for this city and
   2-3 cash flow tips.

Respond with ONLY a JSON object in this exact shape, numbers as plain numbers:
{RESPONSE_FIELDS}"""


def parse_json_object(text: str) -> dict:
    """
    Extract the JSON object from a model response.

    Tolerates leading/trailing prose and code fences.
    """
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise MalformedAnalysis("The AI response did not contain a JSON object.")

    try:
        data = json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise MalformedAnalysis(f"The AI response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedAnalysis("The AI response is not a JSON object.")
    return data


class GeminiAnalysisProvider(AnalysisProvider):
    """Budget analysis through Google Gemini."""

    name = "gemini"

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            }
        )

    async def analyze(self, budget: BudgetInput) -> dict:
        prompt = build_analysis_prompt(budget)

        try:
            response = await self._model.generate_content_async(prompt)
            # .text raises ValueError when the response was blocked
            text = response.text
        except Exception as e:
            raise ProviderUnavailable(f"Gemini request failed: {e}") from e

        return parse_json_object(text.strip())
