"""
Analysis Normalizer

Turns the provider's raw payload into a BudgetAnalysis we can trust.

STAGE 1 - SCHEMA CHECK:
- Payload is an object
- Required fields present
- Numbers are real, finite numbers (not strings, not booleans)
- Tax components are not negative
- Text fields are strings, advice fields are lists of strings
Any error here raises MalformedAnalysis with every issue found.

STAGE 2 - RECOMPUTE:
- tax total = federal + state + other (provider total discarded)
- after-tax income = pre-tax income - tax total (provider value discarded)
Everything else (expenses, savings, disposable income, text) is the
provider's judgment and passes through unchanged.

IMPORTANT: normalize() is pure. Same payload and income, same result.
"""

import math
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import ValidationError

from finsight.config import get_settings
from finsight.errors import MalformedAnalysis
from finsight.models.budget import BudgetAnalysis, TaxBreakdown
from finsight.models.validation import ValidationIssue


Number = Union[int, float, Decimal]

# Provider field name -> BudgetAnalysis field name
PASSTHROUGH_NUMBERS = {
    "totalExpenses": "total_expenses",
    "savingsAmount": "savings_amount",
    "disposableIncome": "disposable_income",
}
TAX_COMPONENTS = ("federal", "state", "other")
ADVICE_LISTS = {
    "recommendations": "recommendations",
    "cashflowAdvice": "cashflow_advice",
}


def _to_decimal(value: Any) -> Optional[Decimal]:
    """Return value as Decimal, or None if it is not a finite number."""
    # bool is an int subclass, but true/false is not an amount
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value)) if math.isfinite(value) else None
    return None


class AnalysisNormalizer:
    """Validates a raw provider payload and enforces the derived-value invariants."""

    def __init__(self, disposable_income_tolerance: Optional[Decimal] = None):
        """
        Args:
            disposable_income_tolerance: Allowed gap for consistency_gap().
                Defaults to AppSettings.disposable_income_tolerance.
        """
        if disposable_income_tolerance is None:
            disposable_income_tolerance = get_settings().app.disposable_income_tolerance
        self._tolerance = Decimal(disposable_income_tolerance)

    @property
    def tolerance(self) -> Decimal:
        return self._tolerance

    def _number_issue(self, field: str, value: Any) -> Optional[ValidationIssue]:
        if value is None:
            return ValidationIssue(
                field=field,
                issue_type="missing",
                message=f"{field} is required but was not returned",
            )
        if _to_decimal(value) is None:
            return ValidationIssue(
                field=field,
                issue_type="not_a_number",
                message=f"{field} must be a number, got {type(value).__name__}",
            )
        return None

    def _validate_schema(self, raw: Any) -> list[ValidationIssue]:
        """
        Stage 1: collect every structural problem in the payload.

        Returns an empty list when the payload is usable.
        """
        if not isinstance(raw, Mapping):
            return [ValidationIssue(
                field="$",
                issue_type="not_an_object",
                message=f"Analysis must be a JSON object, got {type(raw).__name__}",
            )]

        issues = []

        summary = raw.get("summary")
        if not isinstance(summary, str):
            issues.append(ValidationIssue(
                field="summary",
                issue_type="missing" if summary is None else "not_a_string",
                message="summary must be a string",
            ))

        taxes = raw.get("taxBreakdown")
        if not isinstance(taxes, Mapping):
            issues.append(ValidationIssue(
                field="taxBreakdown",
                issue_type="missing" if taxes is None else "not_an_object",
                message="taxBreakdown must be an object with federal, state and other",
            ))
        else:
            for component in TAX_COMPONENTS:
                field = f"taxBreakdown.{component}"
                issue = self._number_issue(field, taxes.get(component))
                if issue:
                    issues.append(issue)
                elif _to_decimal(taxes[component]) < 0:
                    issues.append(ValidationIssue(
                        field=field,
                        issue_type="negative",
                        message=f"{field} cannot be negative",
                    ))

        for field in PASSTHROUGH_NUMBERS:
            issue = self._number_issue(field, raw.get(field))
            if issue:
                issues.append(issue)

        for field in ADVICE_LISTS:
            value = raw.get(field)
            if not isinstance(value, list):
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="missing" if value is None else "not_a_list",
                    message=f"{field} must be a list of strings",
                ))
            elif not all(isinstance(item, str) for item in value):
                issues.append(ValidationIssue(
                    field=field,
                    issue_type="not_a_string",
                    message=f"Every item of {field} must be a string",
                ))

        return issues

    def normalize(
        self,
        raw: Any,
        monthly_pre_tax_income: Number,
    ) -> BudgetAnalysis:
        """
        Validate the payload and recompute the mechanical values.

        Args:
            raw: Parsed provider payload (untrusted)
            monthly_pre_tax_income: The income the analysis was requested for

        Raises:
            MalformedAnalysis: The payload fails the schema check
        """
        issues = self._validate_schema(raw)
        if issues:
            raise MalformedAnalysis(
                f"Analysis payload failed validation with {len(issues)} issue(s): "
                + "; ".join(issue.message for issue in issues),
                issues=issues,
            )

        income = _to_decimal(monthly_pre_tax_income)
        if income is None:
            raise ValueError(f"Income must be a finite number, got {monthly_pre_tax_income!r}")

        taxes = raw["taxBreakdown"]
        tax_breakdown = TaxBreakdown.from_components(
            federal=_to_decimal(taxes["federal"]),
            state=_to_decimal(taxes["state"]),
            other=_to_decimal(taxes["other"]),
        )

        values = {
            target: _to_decimal(raw[source])
            for source, target in PASSTHROUGH_NUMBERS.items()
        }
        values.update({
            target: list(raw[source])
            for source, target in ADVICE_LISTS.items()
        })

        try:
            return BudgetAnalysis(
                summary=raw["summary"],
                tax_breakdown=tax_breakdown,
                calculated_after_tax_income=income - tax_breakdown.total,
                **values,
            )
        except ValidationError as e:
            raise MalformedAnalysis(f"Analysis payload could not be built: {e}") from e

    def consistency_gap(self, analysis: BudgetAnalysis) -> Optional[Decimal]:
        """
        Return the disposable income gap if it exceeds the tolerance.

        The gap is reported, never corrected.
        """
        gap = analysis.disposable_income_gap
        if abs(gap) > self._tolerance:
            return gap
        return None
