"""
Data Models Package

This package contains all Pydantic models used in FinSight.
All data flowing through the system must conform to these schemas.
"""

from finsight.models.budget import (
    BudgetAnalysis,
    BudgetInput,
    BudgetInputChange,
    Expense,
    SavingsGoalType,
    TaxBreakdown,
)
from finsight.models.comparison import (
    CityEntry,
    CityEntryStatus,
    city_key,
)
from finsight.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from finsight.models.validation import ValidationIssue

__all__ = [
    # Budget models
    "BudgetAnalysis",
    "BudgetInput",
    "BudgetInputChange",
    "Expense",
    "SavingsGoalType",
    "TaxBreakdown",
    # Comparison models
    "CityEntry",
    "CityEntryStatus",
    "city_key",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Validation
    "ValidationIssue",
]
