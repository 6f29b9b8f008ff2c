"""
City Comparison Models

One CityEntry per city on the comparison board. Entries are owned and
mutated by the ComparisonOrchestrator only; everything outside it
receives deep copies.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from finsight.models.budget import BudgetAnalysis, BudgetInput


def city_key(city: str) -> str:
    """Case- and spacing-insensitive identity of a city name."""
    return " ".join(city.split()).casefold()


class CityEntryStatus(str, Enum):
    """
    Lifecycle of one city's analysis.

    IDLE → LOADING on add or recompute.
    LOADING → READY when the analysis succeeds.
    LOADING → FAILED when it does not.
    READY | FAILED → LOADING on recompute.
    """
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class CityEntry(BaseModel):
    """A city's budget, its latest analysis and where it is in its lifecycle."""

    city: str = Field(
        ...,
        min_length=1,
        description="Display name, unique case-insensitively per board"
    )
    input: BudgetInput
    analysis: Optional[BudgetAnalysis] = Field(
        default=None,
        description="Latest successful analysis (kept through later failures)"
    )
    status: CityEntryStatus = CityEntryStatus.IDLE
    last_error: Optional[str] = Field(
        default=None,
        description="User-presentable cause of the last failure"
    )
    is_primary: bool = False

    # The input snapshot that produced `analysis`
    analyzed_input: Optional[BudgetInput] = None
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def key(self) -> str:
        return city_key(self.city)

    @property
    def is_stale(self) -> bool:
        """A previous analysis is shown while a new one is computed."""
        return self.status == CityEntryStatus.LOADING and self.analysis is not None

    @property
    def has_pending_edits(self) -> bool:
        """The input was edited after the shown analysis was produced."""
        return self.analyzed_input is not None and self.analyzed_input != self.input

    @property
    def cash_flow(self) -> list["CashFlowLine"]:
        """
        Income flowing down to disposable income, one line per step.

        Pre-tax income and expense lines come from the input that produced
        the shown analysis, so the rows always add up to its figures.
        """
        if self.analysis is None:
            return []
        budget = self.analyzed_input or self.input
        analysis = self.analysis
        taxes = analysis.tax_breakdown

        lines = [
            CashFlowLine(label="Pre-Tax Income", amount=budget.monthly_pre_tax_income or Decimal("0")),
            CashFlowLine(label="Federal Tax", amount=-taxes.federal, detail=True),
            CashFlowLine(label="State Tax", amount=-taxes.state, detail=True),
            CashFlowLine(label="Other Taxes (FICA, local)", amount=-taxes.other, detail=True),
            CashFlowLine(label="After-Tax Income", amount=analysis.calculated_after_tax_income),
            CashFlowLine(label="Total Expenses", amount=-analysis.total_expenses),
        ]
        for expense in budget.expenses:
            lines.append(CashFlowLine(
                label=expense.name or "Unnamed",
                amount=-expense.amount_or_zero,
                detail=True,
            ))
        lines.append(CashFlowLine(label="Savings", amount=-analysis.savings_amount))
        lines.append(CashFlowLine(label="Disposable Income", amount=analysis.disposable_income))
        return lines


class CashFlowLine(BaseModel):
    """One row of a cash flow breakdown. Outflows are negative."""

    label: str
    amount: Decimal
    # Itemizes the total above it
    detail: bool = False
