"""
Errors raised by FinSight.

Two families:

ORCHESTRATOR ERRORS (DuplicateCity, CannotRemovePrimary, UnknownCity,
AlreadyInProgress) and InvalidInput are raised synchronously, before any
call to the provider, and never change an entry's status.

ANALYSIS ERRORS (ProviderUnavailable, MalformedAnalysis) come out of the
engine. Inside the orchestrator they always end up as a FAILED entry
whose last_error is the error's user_message.

Every class carries a stable user_message that is safe to show on screen;
the exception text itself may contain technical detail.
"""

from typing import Any, Optional

from finsight.models.validation import ValidationIssue


class FinSightError(Exception):
    """Base exception for all FinSight errors."""

    user_message = "Something went wrong. Please try again."

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class InvalidInput(FinSightError):
    """The budget cannot be analyzed as given (typically: no usable income)."""

    user_message = "Please enter a valid income."

    def __init__(
        self,
        message: str,
        *,
        user_message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details=details)
        if user_message is not None:
            self.user_message = user_message


# =============================================================================
# ORCHESTRATOR ERRORS
# =============================================================================

class OrchestratorError(FinSightError):
    """Base exception for rejected board operations."""
    pass


class DuplicateCity(OrchestratorError):
    """The city is already on the board (case-insensitive)."""

    user_message = "This city is already in the comparison."

    def __init__(self, city: str, message: Optional[str] = None):
        self.city = city
        super().__init__(message or f"{city} is already in the comparison.")


class ComparisonLimitReached(DuplicateCity):
    """The board already holds the maximum number of comparison cities."""

    user_message = "You can compare at most {limit} cities at a time."

    def __init__(self, city: str, limit: int):
        self.limit = limit
        self.user_message = ComparisonLimitReached.user_message.format(limit=limit)
        super().__init__(
            city,
            f"Cannot add {city}: the comparison already holds {limit} cities.",
        )


class CannotRemovePrimary(OrchestratorError):
    """The primary city is always on the board."""

    user_message = "Your primary city cannot be removed."

    def __init__(self, city: str):
        self.city = city
        super().__init__(f"{city} is the primary city and cannot be removed.")


class UnknownCity(OrchestratorError):
    """No entry exists for the city."""

    user_message = "That city is not in the comparison."

    def __init__(self, city: str):
        self.city = city
        super().__init__(f"{city} is not in the comparison.")


class AlreadyInProgress(OrchestratorError):
    """An analysis for this city is still running."""

    user_message = "This city is still being analyzed."

    def __init__(self, city: str):
        self.city = city
        super().__init__(f"An analysis for {city} is already in progress.")


# =============================================================================
# ANALYSIS ERRORS
# =============================================================================

class AnalysisError(FinSightError):
    """Base exception for failures while producing an analysis."""
    pass


class ProviderUnavailable(AnalysisError):
    """The analysis provider could not be reached or refused the request."""

    user_message = "The analysis service is unavailable right now. Please try again."


class MalformedAnalysis(AnalysisError):
    """The provider answered, but the payload fails schema or numeric checks."""

    user_message = "The AI returned an invalid response format."

    def __init__(
        self,
        message: str,
        issues: Optional[list[ValidationIssue]] = None,
    ):
        self.issues = issues or []
        super().__init__(
            message,
            details={"issues": [issue.model_dump() for issue in self.issues]},
        )
