"""
Audit Models for Household Ledger

Every significant state change and every background failure is logged as
an audit event. Remote write failures are invisible to the user, so these
events are the only place they surface.

DESIGN DECISION: Audit events are append-only structured log records.
They are never read back to drive application state.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Session
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"
    PROFILE_CREATED = "profile_created"

    # Hydration
    HYDRATION_COMPLETED = "hydration_completed"
    HYDRATION_FAILED = "hydration_failed"

    # Optimistic mutations and their remote mirror
    MUTATION_APPLIED = "mutation_applied"
    MIRROR_WRITE_COMPLETED = "mirror_write_completed"
    MIRROR_WRITE_FAILED = "mirror_write_failed"

    # Entry validation
    VALIDATION_FAILED = "validation_failed"

    # Recurring bills
    RECURRING_PROCESSED = "recurring_processed"

    # Legacy snapshot sync
    SNAPSHOT_EXPORTED = "snapshot_exported"
    SNAPSHOT_IMPORTED = "snapshot_imported"
    SNAPSHOT_REJECTED = "snapshot_rejected"

    # Offers
    OFFER_CHECK_COMPLETED = "offer_check_completed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    tenant_id: Optional[str] = Field(
        default=None,
        description="Family the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Collection name (e.g., 'expenses', 'shopping_list')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one receipt import)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "tenant_id": self.tenant_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
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
        event = AuditEventBuilder.mirror_write_failed("expenses", "insert", expense_id, err)
        event = AuditEventBuilder.hydration_failed(tenant_id, "stores", err)
    """

    @staticmethod
    def session_started(tenant_id: str, family_name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_STARTED,
            tenant_id=tenant_id,
            description=f"Session started for family: {family_name}",
            is_user_action=True,
        )

    @staticmethod
    def session_ended(tenant_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_ENDED,
            tenant_id=tenant_id,
            description="Session ended, local state cleared",
            is_user_action=True,
        )

    @staticmethod
    def profile_created(tenant_id: str, family_name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_CREATED,
            tenant_id=tenant_id,
            entity_type="families",
            entity_id=tenant_id,
            description=f"Family profile created remotely: {family_name}",
        )

    @staticmethod
    def hydration_completed(
        tenant_id: str,
        counts: dict[str, int],
        failed: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HYDRATION_COMPLETED,
            severity=AuditSeverity.WARNING if failed else AuditSeverity.INFO,
            tenant_id=tenant_id,
            description=(
                f"Hydrated {len(counts) - len(failed)} of {len(counts)} collections"
            ),
            details={
                "counts": counts,
                "failed_collections": failed,
            },
        )

    @staticmethod
    def hydration_failed(
        tenant_id: str,
        collection: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HYDRATION_FAILED,
            severity=AuditSeverity.WARNING,
            tenant_id=tenant_id,
            entity_type=collection,
            description=f"Could not load {collection}, using fallback",
            error_message=error_message,
        )

    @staticmethod
    def mutation_applied(
        tenant_id: Optional[str],
        collection: str,
        operation: str,
        entity_id: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MUTATION_APPLIED,
            severity=AuditSeverity.DEBUG,
            tenant_id=tenant_id,
            entity_type=collection,
            entity_id=entity_id,
            description=f"Local {operation} applied to {collection}",
            details={"operation": operation},
            is_user_action=True,
        )

    @staticmethod
    def mirror_write_completed(
        tenant_id: Optional[str],
        collection: str,
        operation: str,
        entity_id: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIRROR_WRITE_COMPLETED,
            severity=AuditSeverity.DEBUG,
            tenant_id=tenant_id,
            entity_type=collection,
            entity_id=entity_id,
            description=f"Remote {operation} on {collection} completed",
            details={"operation": operation},
        )

    @staticmethod
    def mirror_write_failed(
        tenant_id: Optional[str],
        collection: str,
        operation: str,
        entity_id: Optional[str],
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIRROR_WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            tenant_id=tenant_id,
            entity_type=collection,
            entity_id=entity_id,
            description=f"Remote {operation} on {collection} failed; local state kept",
            details={"operation": operation},
            error_message=error_message,
        )

    @staticmethod
    def validation_failed(entity_type: str, issues: list[dict]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            description=f"Entry rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def recurring_processed(
        tenant_id: Optional[str],
        recurring_id: str,
        expense_id: str,
        next_due_date: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_PROCESSED,
            tenant_id=tenant_id,
            entity_type="recurring_expenses",
            entity_id=recurring_id,
            description=f"Recurring bill paid, next due {next_due_date}",
            details={
                "expense_id": expense_id,
                "next_due_date": next_due_date,
            },
            is_user_action=True,
        )

    @staticmethod
    def snapshot_exported(tenant_id: Optional[str], counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_EXPORTED,
            tenant_id=tenant_id,
            description="Snapshot token generated",
            details={"counts": counts},
            is_user_action=True,
        )

    @staticmethod
    def snapshot_imported(tenant_id: Optional[str], counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_IMPORTED,
            severity=AuditSeverity.WARNING,
            tenant_id=tenant_id,
            description="Snapshot imported, local collections replaced",
            details={"counts": counts},
            is_user_action=True,
        )

    @staticmethod
    def snapshot_rejected(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_REJECTED,
            severity=AuditSeverity.WARNING,
            description="Snapshot token rejected",
            error_message=reason,
            is_user_action=True,
        )

    @staticmethod
    def offer_check_completed(city: str, store_count: int, offer_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OFFER_CHECK_COMPLETED,
            description=f"Flyer check for {city}: {offer_count} flyers",
            details={
                "city": city,
                "store_count": store_count,
                "offer_count": offer_count,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.WARNING,
            description=f"External service unavailable: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
