"""
Audit Models for the Exemption Tracker

Every significant action in the system is logged for audit purposes:
recorded income, threshold crossings, profile creation, rate fetches,
exports and collaborator failures.

Events are append-only: nothing in the codebase updates or deletes them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Income ledger
    ENTRY_ADDED = "entry_added"
    ENTRY_REJECTED = "entry_rejected"
    THRESHOLD_APPROACHING = "threshold_approaching"
    THRESHOLD_EXCEEDED = "threshold_exceeded"

    # Profiles
    PROFILE_CREATED = "profile_created"
    PROFILE_FETCH_FAILED = "profile_fetch_failed"

    # Exchange rates
    RATES_FETCHED = "rates_fetched"
    RATES_FETCH_FAILED = "rates_fetch_failed"

    # Exports
    EXPORT_GENERATED = "export_generated"
    EXPORT_FAILED = "export_failed"

    # Tasks
    TASK_COMPLETED = "task_completed"

    # Persistence
    SAVE_FAILED = "save_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """How loudly an event is logged."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    One row in the audit sheet.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Event id"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="UTC"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Subject
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'entry', 'profile', 'export')"
    )
    entity_id: Optional[UUID] = None
    user_id: Optional[str] = Field(
        default=None,
        description="Owner of the session the event belongs to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Shown in the audit sheet"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="True when a user click caused the event"
    )

    def to_log_dict(self) -> dict:
        """
        Flat dict for structlog keyword arguments.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "user_id": self.user_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Row for the audit worksheet.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         user_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            self.user_id or "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Factory methods, one per audit event type.

    Usage:
        event = AuditEventBuilder.entry_added(entry_id, "500 USD", "17060", user_id)
        event = AuditEventBuilder.threshold_exceeded("70000", "67000", user_id)
    """

    @staticmethod
    def entry_added(
        entry_id: UUID,
        original: str,
        domestic_value: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_ADDED,
            entity_type="entry",
            entity_id=entry_id,
            user_id=user_id,
            description=f"Income recorded: {original} = {domestic_value} TRY",
            details={
                "original": original,
                "domestic_value": domestic_value,
            },
            is_user_action=True,
        )

    @staticmethod
    def entry_rejected(
        fields: list[str],
        reason: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="entry",
            user_id=user_id,
            description=f"Income entry rejected: {reason}",
            details={
                "fields": fields,
            },
            is_user_action=True,
        )

    @staticmethod
    def threshold_approaching(
        total: str,
        headroom: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.THRESHOLD_APPROACHING,
            entity_type="ledger",
            user_id=user_id,
            description=f"Total {total} TRY is approaching the limit ({headroom} TRY left)",
            details={
                "total": total,
                "headroom": headroom,
            },
        )

    @staticmethod
    def threshold_exceeded(
        total: str,
        threshold: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.THRESHOLD_EXCEEDED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            user_id=user_id,
            description=f"Total {total} TRY exceeded the {threshold} TRY limit",
            details={
                "total": total,
                "threshold": threshold,
            },
        )

    @staticmethod
    def profile_created(user_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_CREATED,
            entity_type="profile",
            user_id=user_id,
            description="User profile created",
            is_user_action=True,
        )

    @staticmethod
    def profile_fetch_failed(user_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_FETCH_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="profile",
            user_id=user_id,
            description="Could not load user profile",
            error_message=error_message,
        )

    @staticmethod
    def rates_fetched(source: str, currencies: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_FETCHED,
            entity_type="rates",
            description=f"Exchange rates fetched from {source}",
            details={
                "source": source,
                "currencies": currencies,
            },
        )

    @staticmethod
    def rates_fetch_failed(source: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_FETCH_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="rates",
            description=f"Exchange rate fetch failed: {source}",
            error_message=error_message,
            details={
                "source": source,
            },
        )

    @staticmethod
    def export_generated(
        kind: str,
        entry_count: int,
        size_bytes: int,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_GENERATED,
            entity_type="export",
            user_id=user_id,
            description=f"{kind.capitalize()} export generated with {entry_count} entries",
            details={
                "kind": kind,
                "entry_count": entry_count,
                "size_bytes": size_bytes,
            },
            is_user_action=True,
        )

    @staticmethod
    def export_failed(
        kind: str,
        error_message: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPORT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="export",
            user_id=user_id,
            description=f"{kind.capitalize()} export failed",
            error_message=error_message,
            details={
                "kind": kind,
            },
        )

    @staticmethod
    def task_completed(task_id: int, text: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TASK_COMPLETED,
            entity_type="task",
            description=f"Task completed: {text}",
            details={
                "task_id": task_id,
            },
            is_user_action=True,
        )

    @staticmethod
    def save_failed(
        entity_type: str,
        error_message: str,
        entity_id: Optional[UUID] = None,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            description=f"Failed to save {entity_type}",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
        )
