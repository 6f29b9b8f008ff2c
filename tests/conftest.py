"""Shared test fixtures for FinSight tests."""

import asyncio
import copy
from decimal import Decimal
from typing import Optional

import pytest

from finsight.audit import AuditLogger
from finsight.engine import AnalysisEngine
from finsight.models.budget import BudgetInput, Expense, SavingsGoalType
from finsight.models.comparison import city_key
from finsight.orchestrator import ComparisonOrchestrator
from finsight.services.provider import AnalysisProvider
from finsight.validation import AnalysisNormalizer


def make_payload(
    federal=800,
    state=300,
    other=150,
    total=1250,
    total_expenses=2050,
    savings_amount=950,
    disposable_income=1750,
    summary="You are in good shape.",
    **overrides,
) -> dict:
    """A provider payload in the wire shape; consistent by default for 6000/mo."""
    payload = {
        "summary": summary,
        "taxBreakdown": {
            "federal": federal,
            "state": state,
            "other": other,
            "total": total,
        },
        "calculatedAfterTaxIncome": 4750,
        "totalExpenses": total_expenses,
        "savingsAmount": savings_amount,
        "disposableIncome": disposable_income,
        "recommendations": ["Cook at home", "Use public transit"],
        "cashflowAdvice": ["Ask for a raise"],
    }
    payload.update(overrides)
    return payload


class ScriptedAnalysisProvider(AnalysisProvider):
    """
    In-memory provider for tests.

    Per city, answers come from a queue of payloads or exceptions,
    falling back to `default`. hold(city) makes the next call for that
    city wait until the returned event is set.
    """

    name = "scripted"

    def __init__(self, default: Optional[dict] = None):
        self.default = default if default is not None else make_payload()
        self.responses: dict[str, list] = {}
        self.gates: dict[str, list[asyncio.Event]] = {}
        self.calls: list[BudgetInput] = []

    def script(self, city: str, *responses) -> None:
        self.responses.setdefault(city_key(city), []).extend(responses)

    def hold(self, city: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates.setdefault(city_key(city), []).append(gate)
        return gate

    def calls_for(self, city: str) -> list[BudgetInput]:
        return [call for call in self.calls if city_key(call.city) == city_key(city)]

    async def analyze(self, budget: BudgetInput) -> dict:
        self.calls.append(budget)
        key = city_key(budget.city)

        gates = self.gates.get(key)
        if gates:
            await gates.pop(0).wait()

        queue = self.responses.get(key)
        response = queue.pop(0) if queue else self.default
        if isinstance(response, BaseException):
            raise response
        return copy.deepcopy(response)


class RecordingAuditLogger(AuditLogger):
    """AuditLogger that also keeps every event in memory."""

    def __init__(self):
        super().__init__()
        self.events = []

    def log(self, event) -> None:
        self.events.append(event)
        super().log(event)

    def event_types(self) -> list[str]:
        return [event.event_type.value for event in self.events]


@pytest.fixture
def sample_budget() -> BudgetInput:
    """Primary budget used across tests."""
    return BudgetInput(
        city="San Francisco",
        monthly_pre_tax_income=Decimal("6000"),
        savings_goal_type=SavingsGoalType.PERCENTAGE,
        savings_goal_value=Decimal("20"),
        expenses=[
            Expense(name="Rent/Mortgage", amount=Decimal("1500")),
            Expense(name="Groceries", amount=Decimal("400")),
            Expense(name="Utilities", amount=Decimal("150")),
        ],
    )


@pytest.fixture
def valid_payload() -> dict:
    return make_payload()


@pytest.fixture
def payload_factory():
    """make_payload, for tests that need variations of the payload."""
    return make_payload


@pytest.fixture
def provider() -> ScriptedAnalysisProvider:
    return ScriptedAnalysisProvider()


@pytest.fixture
def audit_logger() -> RecordingAuditLogger:
    return RecordingAuditLogger()


@pytest.fixture
def normalizer() -> AnalysisNormalizer:
    return AnalysisNormalizer(disposable_income_tolerance=Decimal("1.00"))


@pytest.fixture
def engine(provider, normalizer, audit_logger) -> AnalysisEngine:
    return AnalysisEngine(
        provider=provider,
        normalizer=normalizer,
        audit_logger=audit_logger,
    )


@pytest.fixture
def orchestrator(engine, sample_budget, audit_logger) -> ComparisonOrchestrator:
    return ComparisonOrchestrator(
        engine=engine,
        primary_input=sample_budget,
        max_comparisons=4,
        audit_logger=audit_logger,
    )
