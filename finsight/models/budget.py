"""
Core Budget Models for FinSight

These models define the strict schemas for the budget a user describes
and the analysis derived from it. They are designed to:
1. Enforce type safety at runtime
2. Make "not filled in yet" an explicit state, separate from zero
3. Carry money as Decimal so derived totals compare exactly

DESIGN DECISION: An unset number is None, never 0.
Forms may hand us "" for an empty box; it is normalized to None here.
Coercion to 0 happens in exactly one place: submission_payload().
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def _blank_to_none(value: Any) -> Any:
    """Treat an empty form value as unset."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _as_number(value: Optional[Decimal]) -> float:
    return float(value) if value is not None else 0.0


# =============================================================================
# ENUMS
# =============================================================================

class SavingsGoalType(str, Enum):
    """How the savings goal value is interpreted."""
    PERCENTAGE = "percentage"  # Percent of after-tax income
    FIXED_AMOUNT = "amount"    # Fixed monthly amount


# =============================================================================
# BUDGET INPUT
# =============================================================================

class Expense(BaseModel):
    """A single monthly expense line."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Stable identifier of this line within its budget"
    )
    name: str = Field(
        default="",
        max_length=100,
        description="What the money is spent on"
    )
    amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Monthly amount (None = not filled in yet)"
    )

    @field_validator("amount", mode="before")
    @classmethod
    def blank_amount_is_unset(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @property
    def amount_or_zero(self) -> Decimal:
        return self.amount if self.amount is not None else Decimal("0")


class BudgetInput(BaseModel):
    """
    A monthly budget for one city.

    Expense order is kept for display only; the analysis does not
    depend on it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    city: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="City the budget is for"
    )
    monthly_pre_tax_income: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Monthly income before tax (None = not filled in yet)"
    )
    savings_goal_type: SavingsGoalType = Field(
        default=SavingsGoalType.PERCENTAGE,
        description="How savings_goal_value is interpreted"
    )
    savings_goal_value: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Percentage (0-100) or fixed monthly amount"
    )
    expenses: list[Expense] = Field(default_factory=list)

    @field_validator("monthly_pre_tax_income", "savings_goal_value", mode="before")
    @classmethod
    def blank_number_is_unset(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @model_validator(mode="after")
    def validate_budget(self) -> "BudgetInput":
        """Validate cross-field rules."""
        if (
            self.savings_goal_type == SavingsGoalType.PERCENTAGE
            and self.savings_goal_value is not None
            and self.savings_goal_value > 100
        ):
            raise ValueError("Savings percentage must be between 0 and 100")

        ids = [expense.id for expense in self.expenses]
        if len(ids) != len(set(ids)):
            raise ValueError("Expense ids must be unique within a budget")

        return self

    @property
    def has_usable_income(self) -> bool:
        """A budget can only be analyzed with a positive income."""
        return (
            self.monthly_pre_tax_income is not None
            and self.monthly_pre_tax_income > 0
        )

    @property
    def total_listed_expenses(self) -> Decimal:
        """Sum of the expense lines, unset amounts counted as 0."""
        return sum(
            (expense.amount_or_zero for expense in self.expenses),
            Decimal("0"),
        )

    def submission_payload(self) -> dict:
        """
        Plain, JSON-ready view of the budget as sent for analysis.

        Unset values are coerced to 0 here and only here.
        """
        return {
            "city": self.city,
            "monthlyPreTaxIncome": _as_number(self.monthly_pre_tax_income),
            "savingsGoal": {
                "type": self.savings_goal_type.value,
                "value": _as_number(self.savings_goal_value),
            },
            "expenses": [
                {"name": expense.name, "amount": _as_number(expense.amount)}
                for expense in self.expenses
            ],
        }

    def with_city(self, city: str) -> "BudgetInput":
        """Return an independent copy of this budget for another city."""
        data = self.model_dump()
        data["city"] = city
        return BudgetInput.model_validate(data)

    def apply_change(self, change: "BudgetInputChange") -> "BudgetInput":
        """
        Merge the explicitly set fields of a change into a new budget.

        Switching the savings goal type without giving a value resets
        the value to unset, since 20 (%) and 20 ($) mean different things.
        """
        data = self.model_dump()

        for name in change.model_fields_set:
            value = getattr(change, name)
            if name == "expenses":
                value = [expense.model_dump() for expense in value]
            data[name] = value

        if (
            "savings_goal_type" in change.model_fields_set
            and "savings_goal_value" not in change.model_fields_set
            and change.savings_goal_type != self.savings_goal_type
        ):
            data["savings_goal_value"] = None

        return BudgetInput.model_validate(data)


class BudgetInputChange(BaseModel):
    """
    A partial edit of a BudgetInput.

    Only fields passed explicitly are applied; passing None for a
    number marks it unset. The city cannot be edited: it identifies
    the entry.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    monthly_pre_tax_income: Optional[Decimal] = Field(default=None, ge=0)
    savings_goal_type: Optional[SavingsGoalType] = None
    savings_goal_value: Optional[Decimal] = Field(default=None, ge=0)
    expenses: Optional[list[Expense]] = None

    @field_validator("monthly_pre_tax_income", "savings_goal_value", mode="before")
    @classmethod
    def blank_number_is_unset(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("expenses")
    @classmethod
    def expenses_cannot_be_unset(cls, v: Optional[list[Expense]]) -> Optional[list[Expense]]:
        if v is None:
            raise ValueError("Expenses must be a list; pass [] to clear them")
        return v


# =============================================================================
# ANALYSIS
# =============================================================================

class TaxBreakdown(BaseModel):
    """
    Estimated monthly taxes.

    CRITICAL: total is always federal + state + other.
    Build it with from_components(); a provider's total is never used.
    """

    federal: Decimal = Field(..., ge=0)
    state: Decimal = Field(..., ge=0)
    other: Decimal = Field(..., ge=0, description="FICA, local and similar")
    total: Decimal = Field(..., ge=0)

    @model_validator(mode="after")
    def validate_total(self) -> "TaxBreakdown":
        if self.total != self.federal + self.state + self.other:
            raise ValueError("Tax total must equal federal + state + other")
        return self

    @classmethod
    def from_components(
        cls,
        federal: Decimal,
        state: Decimal,
        other: Decimal,
    ) -> "TaxBreakdown":
        return cls(
            federal=federal,
            state=state,
            other=other,
            total=federal + state + other,
        )


class BudgetAnalysis(BaseModel):
    """
    The derived analysis for one budget.

    tax_breakdown.total and calculated_after_tax_income are mechanical
    and recomputed locally. Everything else is the provider's judgment
    and is kept as given.
    """

    summary: str
    tax_breakdown: TaxBreakdown
    calculated_after_tax_income: Decimal
    total_expenses: Decimal
    savings_amount: Decimal
    disposable_income: Decimal
    recommendations: list[str] = Field(default_factory=list)
    cashflow_advice: list[str] = Field(default_factory=list)

    @property
    def disposable_income_gap(self) -> Decimal:
        """
        How far the provider's disposable income is from
        after-tax income - expenses - savings.
        """
        expected = (
            self.calculated_after_tax_income
            - self.total_expenses
            - self.savings_amount
        )
        return expected - self.disposable_income
