"""
Audit Models for FinSight

Every state transition of a city entry is recorded as an audit event.
This provides:
1. Traceability of what was analyzed, with which income
2. Debugging information when the provider misbehaves
3. A way to reconstruct the order of concurrent analyses

DESIGN DECISION: Events are built in one place (AuditEventBuilder)
so every transition is described the same way.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Board changes
    CITY_ADDED = "city_added"
    CITY_REMOVED = "city_removed"
    INPUT_EDITED = "input_edited"

    # Analysis lifecycle
    ANALYSIS_STARTED = "analysis_started"
    ANALYSIS_COMPLETED = "analysis_completed"
    ANALYSIS_FAILED = "analysis_failed"
    ANALYSIS_DISCARDED = "analysis_discarded"
    RECOMPUTE_REJECTED = "recompute_rejected"

    # Provider
    PROVIDER_ERROR = "provider_error"
    ANALYSIS_INCONSISTENT = "analysis_inconsistent"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Which city entry this is about
    city: Optional[str] = None

    # Ties together the events of one analysis run
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "city": self.city,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.city_added("Austin", seeded_from="San Francisco")
        event = AuditEventBuilder.analysis_failed("Austin", "MalformedAnalysis", msg, cid)
    """

    @staticmethod
    def city_added(city: str, seeded_from: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CITY_ADDED,
            city=city,
            description=f"City added to comparison: {city}",
            details={"seeded_from": seeded_from},
            is_user_action=True,
        )

    @staticmethod
    def city_removed(city: str, was_loading: bool) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CITY_REMOVED,
            city=city,
            description=f"City removed from comparison: {city}",
            details={"was_loading": was_loading},
            is_user_action=True,
        )

    @staticmethod
    def input_edited(city: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INPUT_EDITED,
            city=city,
            description=f"Budget edited for {city}: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def analysis_started(
        city: str,
        income: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_STARTED,
            city=city,
            correlation_id=correlation_id,
            description=f"Analysis started for {city}",
            details={"monthly_pre_tax_income": income},
        )

    @staticmethod
    def analysis_completed(
        city: str,
        tax_total: str,
        disposable_income: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_COMPLETED,
            city=city,
            correlation_id=correlation_id,
            description=f"Analysis ready for {city}",
            details={
                "tax_total": tax_total,
                "disposable_income": disposable_income,
            },
        )

    @staticmethod
    def analysis_failed(
        city: str,
        error_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_FAILED,
            severity=AuditSeverity.WARNING,
            city=city,
            correlation_id=correlation_id,
            description=f"Analysis failed for {city}: {error_type}",
            error_message=error_message,
            details={"error_type": error_type},
        )

    @staticmethod
    def analysis_discarded(
        city: str,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_DISCARDED,
            severity=AuditSeverity.DEBUG,
            city=city,
            correlation_id=correlation_id,
            description=f"Late analysis result for {city} discarded",
            details={"reason": reason},
        )

    @staticmethod
    def recompute_rejected(city: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECOMPUTE_REJECTED,
            severity=AuditSeverity.DEBUG,
            city=city,
            description=f"Recompute for {city} rejected: analysis already in progress",
            is_user_action=True,
        )

    @staticmethod
    def provider_error(
        provider: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROVIDER_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Analysis provider error: {provider}",
            error_message=error_message,
            details={"provider": provider},
        )

    @staticmethod
    def analysis_inconsistent(
        city: str,
        gap: str,
        tolerance: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_INCONSISTENT,
            severity=AuditSeverity.WARNING,
            city=city,
            description=(
                f"Disposable income for {city} is off by {gap} "
                f"from after-tax income - expenses - savings"
            ),
            details={"gap": gap, "tolerance": tolerance},
        )
