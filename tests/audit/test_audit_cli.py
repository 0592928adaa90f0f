"""Tests for the audit trail CLI."""

from datetime import UTC, datetime
from pathlib import Path

import pytest

from quote_engine.audit.cli import build_parser, format_json, format_table, main, parse_last_duration
from quote_engine.audit.logger import AuditLogger
from quote_engine.audit.models import AuditContext
from quote_engine.audit.store import close_audit_db, init_audit_db

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


class TestParseLastDuration:
    """Tests for the --last shorthand."""

    def test_days(self):
        assert parse_last_duration("7d", now=NOW) == "2026-03-03T12:00:00Z"

    def test_hours(self):
        assert parse_last_duration("24h", now=NOW) == "2026-03-09T12:00:00Z"

    @pytest.mark.parametrize("value", ["", "d", "7w", "abc"])
    def test_rejects_unknown_format(self, value):
        with pytest.raises(ValueError, match="Unrecognized duration format"):
            parse_last_duration(value, now=NOW)


class TestParser:
    """Tests for argument parsing."""

    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.output_format == "table"
        assert args.limit == 50
        assert args.failures_only is False

    def test_rejects_unknown_action(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--action", "launch_rockets"])


class TestFormatting:
    """Tests for output formatting."""

    def test_empty_table(self):
        assert format_table([]) == "No results found."

    def test_table_marks_failures_and_passive_rows(self):
        rows = [
            {
                "timestamp": "2026-03-01T12:00:00.000000Z",
                "action": "tracking_rejected",
                "actor_id": "anonymous",
                "quote_id": "q-1",
                "client_ip": "abc",
                "success": False,
                "failure_reason": "tampered",
                "passive": True,
            }
        ]
        output = format_table(rows)
        assert "FAILED tampered (passive)" in output
        assert "tracking_rejected" in output

    def test_json(self):
        assert '"action": "view_quote"' in format_json([{"action": "view_quote"}])


class TestMain:
    """End-to-end CLI run against a real database."""

    def test_prints_matching_entries(self, tmp_path: Path, capsys, admin_context: AuditContext):
        db_path = tmp_path / "audit.db"
        conn = init_audit_db(db_path)
        AuditLogger(conn).log_quote_viewed(admin_context, "q-42")
        close_audit_db(conn)

        main(["--db", str(db_path), "--quote", "q-42", "--format", "json"])

        output = capsys.readouterr().out
        assert '"quote_id": "q-42"' in output
        assert '"action": "view_quote"' in output
