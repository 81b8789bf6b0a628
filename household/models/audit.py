"""
Audit Models for Household Ledger

Every significant sync, write and migration step is logged for audit purposes.
This provides:
1. Traceability of what the sync layer did with the user's data
2. Debugging information when the remote store misbehaves
3. The source for the "not connected" indicator in the UI

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each state transition of a synchronized collection has its own type.
    """
    # Subscription lifecycle
    SUBSCRIPTION_OPENED = "subscription_opened"
    SNAPSHOT_APPLIED = "snapshot_applied"
    SUBSCRIPTION_ERROR = "subscription_error"
    CACHE_FALLBACK = "cache_fallback"
    RETRY_SCHEDULED = "retry_scheduled"
    COLLECTION_CLOSED = "collection_closed"

    # Local cache
    CACHE_WRITE_FAILED = "cache_write_failed"

    # Writes
    RECORD_ADDED = "record_added"
    RECORD_UPDATED = "record_updated"
    RECORD_REMOVED = "record_removed"
    WRITE_FAILED = "write_failed"

    # Legacy migration
    MIGRATION_SKIPPED = "migration_skipped"
    MIGRATION_COMPLETED = "migration_completed"
    MIGRATION_FAILED = "migration_failed"

    # Backups
    EXPORT_CREATED = "export_created"
    IMPORT_COMPLETED = "import_completed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    One thing that happened to a collection or to the ledger.

    Events carry ids and counts, never record payloads.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
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

    # Context - which collection and record is this about?
    collection: Optional[str] = Field(
        default=None,
        description="Collection name (e.g., 'expenses')"
    )
    record_id: Optional[str] = Field(
        default=None,
        description="Store identifier of the record, if any"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_type: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Flat keyword arguments for structlog."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "collection": self.collection,
            "record_id": self.record_id,
            "description": self.description,
            "details": self.details,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


def _error_fields(error: BaseException) -> dict:
    return {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }


class AuditEventBuilder:
    """
    Factory methods, one per event the sync layer emits.

    Usage:
        event = AuditEventBuilder.snapshot_applied("expenses", 12)
        event = AuditEventBuilder.write_failed("goals", "update", error)
    """

    @staticmethod
    def subscription_opened(collection: str, attempt: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_OPENED,
            severity=AuditSeverity.DEBUG,
            collection=collection,
            description=f"Subscribing to {collection}",
            details={"attempt": attempt},
        )

    @staticmethod
    def snapshot_applied(collection: str, record_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_APPLIED,
            severity=AuditSeverity.DEBUG,
            collection=collection,
            description=f"Snapshot applied: {record_count} records",
            details={"record_count": record_count},
        )

    @staticmethod
    def subscription_error(collection: str, error: BaseException) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBSCRIPTION_ERROR,
            severity=AuditSeverity.WARNING,
            collection=collection,
            description=f"Live subscription to {collection} failed",
            **_error_fields(error),
        )

    @staticmethod
    def cache_fallback(collection: str, record_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CACHE_FALLBACK,
            severity=AuditSeverity.WARNING,
            collection=collection,
            description=f"Showing {record_count} cached records for {collection}",
            details={"record_count": record_count},
        )

    @staticmethod
    def retry_scheduled(
        collection: str,
        delay_seconds: float,
        consecutive_failures: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RETRY_SCHEDULED,
            collection=collection,
            description=f"Resubscribing to {collection} in {delay_seconds:.1f}s",
            details={
                "delay_seconds": delay_seconds,
                "consecutive_failures": consecutive_failures,
            },
        )

    @staticmethod
    def collection_closed(collection: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COLLECTION_CLOSED,
            severity=AuditSeverity.DEBUG,
            collection=collection,
            description=f"Collection {collection} closed",
        )

    @staticmethod
    def cache_write_failed(collection: str, error: BaseException) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CACHE_WRITE_FAILED,
            severity=AuditSeverity.WARNING,
            collection=collection,
            description=f"Local cache write failed for {collection}",
            **_error_fields(error),
        )

    @staticmethod
    def record_written(
        collection: str,
        operation: str,
        record_id: str,
    ) -> AuditEvent:
        event_type = {
            "add": AuditEventType.RECORD_ADDED,
            "update": AuditEventType.RECORD_UPDATED,
            "remove": AuditEventType.RECORD_REMOVED,
        }[operation]
        return AuditEvent(
            event_type=event_type,
            collection=collection,
            record_id=record_id,
            description=f"{operation.capitalize()} on {collection}/{record_id}",
            is_user_action=True,
        )

    @staticmethod
    def write_failed(
        collection: str,
        operation: str,
        error: BaseException,
        record_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_FAILED,
            severity=AuditSeverity.ERROR,
            collection=collection,
            record_id=record_id,
            description=f"{operation.capitalize()} on {collection} failed",
            details={"operation": operation},
            is_user_action=True,
            **_error_fields(error),
        )

    @staticmethod
    def migration_skipped(reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_SKIPPED,
            severity=AuditSeverity.DEBUG,
            description=f"Legacy migration skipped: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def migration_completed(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_COMPLETED,
            description=f"Legacy migration replayed {sum(counts.values())} records",
            details={"counts": counts},
        )

    @staticmethod
    def migration_failed(
        error: BaseException,
        counts: dict[str, int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_FAILED,
            severity=AuditSeverity.ERROR,
            description="Legacy migration failed, legacy data kept for retry",
            details={"written_before_failure": counts},
            **_error_fields(error),
        )

    @staticmethod
    def export_created(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_CREATED,
            description=f"Backup bundle with {sum(counts.values())} records",
            details={"counts": counts},
            is_user_action=True,
        )

    @staticmethod
    def import_completed(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMPORT_COMPLETED,
            description=f"Imported {sum(counts.values())} records",
            details={"counts": counts},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_type=error_type,
            error_message=error_message,
            details=details or {},
        )
