"""Convenience class for inserting audit trail entries.

Each method builds a properly structured :class:`AuditEntry` for one kind of
action and appends it through :func:`insert_audit_entry`.  Audit writes are
best effort: a storage failure is logged and reported as ``None`` so the
action being audited still completes.
"""

from __future__ import annotations

import sqlite3
import threading
from typing import Any

import structlog

from quote_engine.audit.models import AuditAction, AuditContext, AuditEntry
from quote_engine.audit.store import insert_audit_entry

logger = structlog.get_logger()


class AuditLogger:
    """Typed convenience API for inserting audit entries.

    Args:
        conn: An open SQLite connection to the audit database.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.Lock()

    def log_action(
        self,
        context: AuditContext,
        action: AuditAction,
        *,
        quote_id: str | None = None,
        success: bool = True,
        failure_reason: str | None = None,
        payload: dict[str, Any] | None = None,
        passive: bool = False,
    ) -> int | None:
        """Append one audit entry.

        Returns:
            The row ID of the inserted entry, or None if the write failed.
        """
        entry = AuditEntry(
            action=action,
            actor_id=context.actor_id,
            actor_email=context.actor_email,
            actor_role=context.actor_role,
            quote_id=quote_id,
            client_ip=context.client_ip,
            user_agent=context.user_agent,
            success=success,
            failure_reason=failure_reason,
            payload=payload,
            passive=passive,
        )
        try:
            with self._lock:
                return insert_audit_entry(self._conn, entry)
        except sqlite3.Error:
            logger.exception(
                "audit_write_failed",
                action=str(action),
                quote_id=quote_id,
                actor_id=context.actor_id,
            )
            return None

    def log_quote_created(
        self,
        context: AuditContext,
        quote_id: str | None,
        enquiry_id: str,
        total_price: str | None = None,
        *,
        success: bool = True,
        error: str | None = None,
    ) -> int | None:
        """Log a quote creation attempt."""
        return self.log_action(
            context,
            AuditAction.CREATE_QUOTE,
            quote_id=quote_id,
            success=success,
            failure_reason=error,
            payload={"enquiry_id": enquiry_id, "total_price": total_price},
        )

    def log_quote_updated(
        self,
        context: AuditContext,
        quote_id: str,
        changed_fields: list[str],
        version: int | None = None,
        *,
        success: bool = True,
        error: str | None = None,
    ) -> int | None:
        """Log an edit to a quote's commercial fields.

        Args:
            context: Who made the edit.
            quote_id: The edited quote.
            changed_fields: Names of the fields supplied in the patch.
            version: The quote version after the edit.
            success: Whether the edit was applied.
            error: Failure reason when ``success`` is False.
        """
        return self.log_action(
            context,
            AuditAction.UPDATE_QUOTE,
            quote_id=quote_id,
            success=success,
            failure_reason=error,
            payload={"changed_fields": sorted(changed_fields), "version": version},
        )

    def log_quote_deleted(self, context: AuditContext, quote_id: str) -> int | None:
        """Log a soft deletion."""
        return self.log_action(context, AuditAction.DELETE_QUOTE, quote_id=quote_id)

    def log_quote_viewed(self, context: AuditContext, quote_id: str) -> int | None:
        """Log an authenticated read of a single quote."""
        return self.log_action(context, AuditAction.VIEW_QUOTE, quote_id=quote_id)

    def log_status_transition(
        self,
        context: AuditContext,
        quote_id: str,
        from_status: str,
        to_status: str,
        *,
        success: bool = True,
        error: str | None = None,
    ) -> int | None:
        """Log a manual status change.

        Stores from_status and to_status in the payload.
        """
        return self.log_action(
            context,
            AuditAction.TRANSITION_STATUS,
            quote_id=quote_id,
            success=success,
            failure_reason=error,
            payload={"from_status": from_status, "to_status": to_status},
        )

    def log_email_sent(
        self,
        context: AuditContext,
        quote_id: str,
        recipient: str,
        *,
        message_id: str | None = None,
        version: int | None = None,
        success: bool = True,
        error: str | None = None,
    ) -> int | None:
        """Log a quote email dispatch attempt.

        Args:
            context: Who triggered the send.
            quote_id: The quote being sent.
            recipient: Recipient email address.
            message_id: Transport message id on success.
            version: Quote version after the send.
            success: Whether the transport accepted the email.
            error: Transport error on failure.
        """
        return self.log_action(
            context,
            AuditAction.SEND_QUOTE_EMAIL,
            quote_id=quote_id,
            success=success,
            failure_reason=error,
            payload={"recipient": recipient, "message_id": message_id, "version": version},
        )

    def log_email_retry(
        self,
        context: AuditContext,
        quote_id: str,
        recipient: str,
        *,
        message_id: str | None = None,
        success: bool = True,
        error: str | None = None,
    ) -> int | None:
        """Log a retry of a previously failed quote email."""
        return self.log_action(
            context,
            AuditAction.RETRY_QUOTE_EMAIL,
            quote_id=quote_id,
            success=success,
            failure_reason=error,
            payload={"recipient": recipient, "message_id": message_id},
        )

    def log_export(
        self,
        context: AuditContext,
        filters: dict[str, Any],
        *,
        record_count: int = 0,
        max_records_reached: bool = False,
        success: bool = True,
        error: str | None = None,
    ) -> int | None:
        """Log a bulk export together with the filters that produced it."""
        return self.log_action(
            context,
            AuditAction.EXPORT_QUOTES,
            success=success,
            failure_reason=error,
            payload={
                "filters": filters,
                "record_count": record_count,
                "max_records_reached": max_records_reached,
            },
        )

    def log_permission_denied(
        self,
        context: AuditContext,
        operation: str,
        quote_id: str | None = None,
        reason: str | None = None,
    ) -> int | None:
        """Log an operation refused by the permission manager."""
        return self.log_action(
            context,
            AuditAction.PERMISSION_DENIED,
            quote_id=quote_id,
            success=False,
            failure_reason=reason or "insufficient_permissions",
            payload={"operation": operation},
        )

    def log_tracking_click(
        self,
        context: AuditContext,
        quote_id: str,
        *,
        status_changed: bool,
    ) -> int | None:
        """Log a customer click on a tracking link as a passive event."""
        return self.log_action(
            context,
            AuditAction.TRACKING_CLICK,
            quote_id=quote_id,
            payload={"status_changed": status_changed},
            passive=True,
        )

    def log_booking_interest(
        self,
        context: AuditContext,
        quote_id: str,
        *,
        first_expression: bool,
    ) -> int | None:
        """Log a customer booking-interest signal as a passive event."""
        return self.log_action(
            context,
            AuditAction.BOOKING_INTEREST,
            quote_id=quote_id,
            payload={"first_expression": first_expression},
            passive=True,
        )

    def log_tracking_rejected(
        self,
        context: AuditContext,
        reason: str,
        quote_id: str | None = None,
    ) -> int | None:
        """Log a tracking request whose token failed validation."""
        return self.log_action(
            context,
            AuditAction.TRACKING_REJECTED,
            quote_id=quote_id,
            success=False,
            failure_reason=reason,
            passive=True,
        )
