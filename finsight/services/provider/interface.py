"""
Abstract Analysis Provider Interface

DESIGN DECISION: The reasoning provider is a black box behind one method.
This allows us to:
1. Swap Gemini for another model
2. Use scripted providers in tests
3. Keep the invariant checks independent of the provider

Whatever a provider returns is UNTRUSTED. Fields may be missing,
wrongly typed or inconsistent; AnalysisNormalizer deals with that.
"""

from abc import ABC, abstractmethod

from finsight.models.budget import BudgetInput


class AnalysisProvider(ABC):
    """Turns a budget into a raw analysis payload."""

    #: Name used in logs and audit events
    name: str = "provider"

    @abstractmethod
    async def analyze(self, budget: BudgetInput) -> dict:
        """
        Produce a raw analysis for the budget.

        The provider must be given at least the city, the pre-tax income,
        the savings goal (type and value) and the expense list;
        budget.submission_payload() has all of them.

        Returns:
            The parsed payload, expected to contain summary, taxBreakdown
            {federal, state, other}, totalExpenses, savingsAmount,
            disposableIncome, recommendations and cashflowAdvice.

        Raises:
            ProviderUnavailable: The request failed or was refused
            MalformedAnalysis: The response could not be parsed
        """
        pass
