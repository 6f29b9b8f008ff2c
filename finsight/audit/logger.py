"""
Audit Logger

DESIGN DECISION: Every state transition of a city entry is logged.
This provides:
1. Traceability of which income produced which analysis
2. Debugging capability when the provider misbehaves
3. Correlation IDs to follow one analysis run across interleaved runs

Logging is local only (structlog). Nothing is persisted.
The orchestrator calls these methods from synchronous code paths,
so they never await.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from finsight.models.audit import AuditEvent, AuditEventBuilder


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=level.upper())


class AuditLogger:
    """Central audit logging service."""

    def __init__(self):
        self._logger = structlog.get_logger("finsight.audit")

    def log(self, event: AuditEvent) -> None:
        """Log an audit event at the level matching its severity."""
        log_dict = event.to_log_dict()

        if event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    def log_city_added(self, city: str, seeded_from: str) -> None:
        self.log(AuditEventBuilder.city_added(city=city, seeded_from=seeded_from))

    def log_city_removed(self, city: str, was_loading: bool) -> None:
        self.log(AuditEventBuilder.city_removed(city=city, was_loading=was_loading))

    def log_input_edited(self, city: str, fields: list[str]) -> None:
        self.log(AuditEventBuilder.input_edited(city=city, fields=fields))

    def log_analysis_started(
        self,
        city: str,
        income: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.analysis_started(
            city=city,
            income=income,
            correlation_id=correlation_id,
        ))

    def log_analysis_completed(
        self,
        city: str,
        tax_total: str,
        disposable_income: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.analysis_completed(
            city=city,
            tax_total=tax_total,
            disposable_income=disposable_income,
            correlation_id=correlation_id,
        ))

    def log_analysis_failed(
        self,
        city: str,
        error_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.analysis_failed(
            city=city,
            error_type=error_type,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_analysis_discarded(
        self,
        city: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.analysis_discarded(
            city=city,
            reason=reason,
            correlation_id=correlation_id,
        ))

    def log_recompute_rejected(self, city: str) -> None:
        self.log(AuditEventBuilder.recompute_rejected(city=city))

    def log_provider_error(
        self,
        provider: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.provider_error(
            provider=provider,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_analysis_inconsistent(
        self,
        city: str,
        gap: str,
        tolerance: str,
    ) -> None:
        self.log(AuditEventBuilder.analysis_inconsistent(
            city=city,
            gap=gap,
            tolerance=tolerance,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    One per analysis run: started, completed/failed/discarded share it.
    """
    return uuid4()
