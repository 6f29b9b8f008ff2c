"""
Analysis Engine

One operation: budget in, verified analysis out.

FLOW:
1. Check the budget has a usable income (no provider call otherwise)
2. Snapshot the budget
3. Ask the provider (optionally under a timeout)
4. Normalize the payload against the snapshot's income

Failures are typed and propagated. There is no default analysis,
no retry and no cache: the same budget twice means two provider calls.
"""

import asyncio
from typing import Optional
from uuid import UUID

from finsight.audit import AuditLogger
from finsight.config import get_settings
from finsight.errors import (
    InvalidInput,
    MalformedAnalysis,
    ProviderUnavailable,
)
from finsight.models.budget import BudgetAnalysis, BudgetInput
from finsight.services.provider import AnalysisProvider
from finsight.validation import AnalysisNormalizer


class AnalysisEngine:
    """Composes an AnalysisProvider and the AnalysisNormalizer."""

    def __init__(
        self,
        provider: AnalysisProvider,
        normalizer: Optional[AnalysisNormalizer] = None,
        timeout_seconds: Optional[float] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        """
        Args:
            provider: Where raw analyses come from.
            normalizer: Defaults to an AnalysisNormalizer with configured tolerance.
            timeout_seconds: Limit for one provider call.
                Defaults to AppSettings.analysis_timeout_seconds (None = no limit).
            audit_logger: Optional audit trail.
        """
        self._provider = provider
        self._normalizer = normalizer or AnalysisNormalizer()
        self._timeout = (
            timeout_seconds
            if timeout_seconds is not None
            else get_settings().app.analysis_timeout_seconds
        )
        self._audit_logger = audit_logger

    @property
    def provider_name(self) -> str:
        return getattr(self._provider, "name", type(self._provider).__name__)

    async def analyze(
        self,
        budget: BudgetInput,
        correlation_id: Optional[UUID] = None,
    ) -> BudgetAnalysis:
        """
        Analyze a budget.

        Raises:
            InvalidInput: Income is unset, zero or negative
            ProviderUnavailable: The provider failed or timed out
            MalformedAnalysis: The provider's payload failed validation
        """
        if not budget.has_usable_income:
            raise InvalidInput(
                f"Cannot analyze {budget.city}: monthly pre-tax income must be "
                f"greater than zero (got {budget.monthly_pre_tax_income})",
                details={"city": budget.city},
            )

        snapshot = budget.model_copy(deep=True)

        raw = await self._call_provider(snapshot, correlation_id)
        analysis = self._normalizer.normalize(raw, snapshot.monthly_pre_tax_income)

        gap = self._normalizer.consistency_gap(analysis)
        if gap is not None and self._audit_logger:
            self._audit_logger.log_analysis_inconsistent(
                city=snapshot.city,
                gap=str(gap),
                tolerance=str(self._normalizer.tolerance),
            )

        return analysis

    async def _call_provider(
        self,
        budget: BudgetInput,
        correlation_id: Optional[UUID],
    ) -> dict:
        """Call the provider, mapping every failure to a named error."""
        try:
            if self._timeout:
                return await asyncio.wait_for(
                    self._provider.analyze(budget),
                    timeout=self._timeout,
                )
            return await self._provider.analyze(budget)
        except MalformedAnalysis:
            raise
        except ProviderUnavailable as e:
            self._log_provider_error(str(e), correlation_id)
            raise
        except asyncio.TimeoutError as e:
            message = f"{self.provider_name} did not answer within {self._timeout}s"
            self._log_provider_error(message, correlation_id)
            raise ProviderUnavailable(message) from e
        except Exception as e:
            message = f"{self.provider_name} request failed: {e}"
            self._log_provider_error(message, correlation_id)
            raise ProviderUnavailable(message) from e

    def _log_provider_error(
        self,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> None:
        if self._audit_logger:
            self._audit_logger.log_provider_error(
                provider=self.provider_name,
                error_message=error_message,
                correlation_id=correlation_id,
            )
