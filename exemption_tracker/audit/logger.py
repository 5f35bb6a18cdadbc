"""
Audit Logger

Income, limit crossings, rates, exports and failures all leave an audit event.
This provides:
1. Complete traceability of recorded income
2. A history of every limit warning the user was shown
3. Debugging capability when a collaborator fails

The audit logger:
- Is async so flows can await it next to storage calls
- Never raises when the audit store is unavailable
"""

from typing import Optional
from uuid import UUID

import structlog

from exemption_tracker.models.audit import AuditEvent, AuditEventBuilder
from exemption_tracker.services.storage import AuditStorageInterface


# JSON lines to the stdlib logger
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


class AuditLogger:
    """
    Writes audit events for one user session.

    Events go to:
    1. The structlog stream
    2. The audit store, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        user_id: Optional[str] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Where events are persisted.
                    None keeps them in the local log only.
            user_id: Session owner stamped on events that don't carry one.
        """
        self._storage = storage
        self._user_id = user_id
        self._logger = structlog.get_logger()

    def bind_user(self, user_id: str) -> None:
        """Attach the session owner to subsequent events."""
        self._user_id = user_id

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        The local log always gets the event; the store gets it when set.

        Returns False only when the store rejected or failed the write.
        """
        if event.user_id is None and self._user_id is not None:
            event = event.model_copy(update={"user_id": self._user_id})

        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Audit failures never reach the caller
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_entry_added(
        self,
        entry_id: UUID,
        original: str,
        domestic_value: str,
    ) -> None:
        """Log a recorded income entry."""
        await self.log(AuditEventBuilder.entry_added(
            entry_id=entry_id,
            original=original,
            domestic_value=domestic_value,
        ))

    async def log_entry_rejected(self, fields: list[str], reason: str) -> None:
        """Log an entry the ledger refused."""
        await self.log(AuditEventBuilder.entry_rejected(fields=fields, reason=reason))

    async def log_threshold_approaching(self, total: str, headroom: str) -> None:
        await self.log(AuditEventBuilder.threshold_approaching(total=total, headroom=headroom))

    async def log_threshold_exceeded(self, total: str, threshold: str) -> None:
        await self.log(AuditEventBuilder.threshold_exceeded(total=total, threshold=threshold))

    async def log_profile_created(self, user_id: str) -> None:
        await self.log(AuditEventBuilder.profile_created(user_id=user_id))

    async def log_profile_fetch_failed(self, user_id: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.profile_fetch_failed(
            user_id=user_id,
            error_message=error_message,
        ))

    async def log_rates_fetched(self, source: str, currencies: list[str]) -> None:
        await self.log(AuditEventBuilder.rates_fetched(source=source, currencies=currencies))

    async def log_rates_fetch_failed(self, source: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.rates_fetch_failed(
            source=source,
            error_message=error_message,
        ))

    async def log_export_generated(self, kind: str, entry_count: int, size_bytes: int) -> None:
        """Log a generated download."""
        await self.log(AuditEventBuilder.export_generated(
            kind=kind,
            entry_count=entry_count,
            size_bytes=size_bytes,
        ))

    async def log_export_failed(self, kind: str, error_message: str) -> None:
        await self.log(AuditEventBuilder.export_failed(kind=kind, error_message=error_message))

    async def log_task_completed(self, task_id: int, text: str) -> None:
        await self.log(AuditEventBuilder.task_completed(task_id=task_id, text=text))

    async def log_save_failed(
        self,
        entity_type: str,
        error_message: str,
        entity_id: Optional[UUID] = None,
    ) -> None:
        """Log a persistence failure."""
        await self.log(AuditEventBuilder.save_failed(
            entity_type=entity_type,
            error_message=error_message,
            entity_id=entity_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
    ) -> None:
        """A third-party service (Sheets, TCMB) failed."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
        ))
