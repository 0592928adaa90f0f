"""Tests for AuditLogger typed methods and best-effort behavior."""

import sqlite3
from pathlib import Path

from quote_engine.audit.logger import AuditLogger
from quote_engine.audit.models import AuditContext
from quote_engine.audit.store import init_audit_db, query_audit_trail
from quote_engine.domain.models import Actor


class TestAuditContext:
    """Tests for building audit contexts."""

    def test_for_actor(self, admin: Actor):
        context = AuditContext.for_actor(admin, client_ip="198.51.100.1")
        assert context.actor_id == "admin-1"
        assert context.actor_role == "admin"
        assert context.client_ip == "198.51.100.1"
        assert context.user_agent == "unknown"

    def test_anonymous(self):
        context = AuditContext.anonymous()
        assert context.actor_id == "anonymous"
        assert context.client_ip == "unknown"


class TestAuditLogger:
    """Tests for AuditLogger convenience methods."""

    def test_log_quote_created(
        self, audit_logger: AuditLogger, audit_conn: sqlite3.Connection, admin_context
    ):
        row_id = audit_logger.log_quote_created(admin_context, "q-1", "enq-1", total_price="10.00")
        assert row_id is not None and row_id > 0
        [row] = query_audit_trail(audit_conn, quote_id="q-1")
        assert row["action"] == "create_quote"
        assert row["actor_email"] == "admin@agency.test"
        assert row["client_ip"] == "203.0.113.7"
        assert row["payload"] == {"enquiry_id": "enq-1", "total_price": "10.00"}

    def test_log_quote_updated_sorts_fields(
        self, audit_logger: AuditLogger, audit_conn: sqlite3.Connection, admin_context
    ):
        audit_logger.log_quote_updated(admin_context, "q-1", ["lead_name", "currency"], 2)
        [row] = query_audit_trail(audit_conn, quote_id="q-1")
        assert row["payload"] == {"changed_fields": ["currency", "lead_name"], "version": 2}

    def test_log_permission_denied(
        self, audit_logger: AuditLogger, audit_conn: sqlite3.Connection, admin_context
    ):
        audit_logger.log_permission_denied(admin_context, "export_quotes", reason="pending_approval")
        [row] = query_audit_trail(audit_conn, action="permission_denied")
        assert row["success"] is False
        assert row["failure_reason"] == "pending_approval"
        assert row["payload"] == {"operation": "export_quotes"}

    def test_log_export(
        self, audit_logger: AuditLogger, audit_conn: sqlite3.Connection, admin_context
    ):
        audit_logger.log_export(
            admin_context, {"status": "sent"}, record_count=3, max_records_reached=False
        )
        [row] = query_audit_trail(audit_conn, action="export_quotes")
        assert row["quote_id"] is None
        assert row["payload"]["filters"] == {"status": "sent"}
        assert row["payload"]["record_count"] == 3

    def test_engagement_events_are_passive(
        self, audit_logger: AuditLogger, audit_conn: sqlite3.Connection
    ):
        context = AuditContext.anonymous(client_ip="hashed")
        audit_logger.log_tracking_click(context, "q-1", status_changed=True)
        audit_logger.log_booking_interest(context, "q-1", first_expression=True)
        audit_logger.log_tracking_rejected(context, "EXPIRED", "q-1")

        rows = query_audit_trail(audit_conn, quote_id="q-1")
        assert len(rows) == 3
        assert all(row["passive"] for row in rows)
        rejected = [row for row in rows if row["action"] == "tracking_rejected"]
        assert rejected[0]["success"] is False
        assert rejected[0]["failure_reason"] == "EXPIRED"


class TestBestEffort:
    """A failing audit store never breaks the audited action."""

    def test_write_failure_returns_none(self, tmp_path: Path, admin_context):
        conn = init_audit_db(tmp_path / "audit.db")
        logger = AuditLogger(conn)
        conn.close()

        assert logger.log_quote_deleted(admin_context, "q-1") is None
