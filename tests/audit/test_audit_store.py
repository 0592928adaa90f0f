"""Tests for the SQLite audit store: schema, inserts, and filtered queries."""

import sqlite3
from pathlib import Path

from quote_engine.audit.models import AuditAction, AuditEntry
from quote_engine.audit.store import init_audit_db, insert_audit_entry, query_audit_trail


def _entry(**overrides) -> AuditEntry:
    data = {
        "action": AuditAction.UPDATE_QUOTE,
        "actor_id": "admin-1",
        "actor_email": "admin@agency.test",
        "actor_role": "admin",
        "quote_id": "q-1",
    }
    data.update(overrides)
    return AuditEntry(**data)


class TestInitAuditDb:
    """Tests for init_audit_db."""

    def test_creates_table_and_indexes(self, tmp_path: Path):
        conn = init_audit_db(tmp_path / "audit.db")
        names = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type IN ('table', 'index')")
        }
        assert "audit_log" in names
        assert {"idx_audit_quote", "idx_audit_timestamp", "idx_audit_actor"} <= names
        conn.close()

    def test_enables_wal(self, tmp_path: Path):
        conn = init_audit_db(tmp_path / "audit.db")
        assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        conn.close()

    def test_is_idempotent(self, tmp_path: Path):
        init_audit_db(tmp_path / "audit.db").close()
        conn = init_audit_db(tmp_path / "audit.db")
        assert conn.execute("SELECT COUNT(*) FROM audit_log").fetchone()[0] == 0
        conn.close()


class TestInsertAndQuery:
    """Tests for insert_audit_entry and query_audit_trail."""

    def test_insert_returns_row_id(self, audit_conn: sqlite3.Connection):
        assert insert_audit_entry(audit_conn, _entry()) > 0

    def test_payload_round_trips_as_dict(self, audit_conn: sqlite3.Connection):
        insert_audit_entry(audit_conn, _entry(payload={"changed_fields": ["lead_name"]}))
        [row] = query_audit_trail(audit_conn, quote_id="q-1")
        assert row["payload"] == {"changed_fields": ["lead_name"]}
        assert row["success"] is True
        assert row["passive"] is False

    def test_filters_by_quote_action_and_outcome(self, audit_conn: sqlite3.Connection):
        insert_audit_entry(audit_conn, _entry())
        insert_audit_entry(audit_conn, _entry(quote_id="q-2"))
        insert_audit_entry(
            audit_conn,
            _entry(action=AuditAction.PERMISSION_DENIED, success=False, failure_reason="nope"),
        )

        assert len(query_audit_trail(audit_conn, quote_id="q-1")) == 2
        assert len(query_audit_trail(audit_conn, action="permission_denied")) == 1
        [failed] = query_audit_trail(audit_conn, success=False)
        assert failed["failure_reason"] == "nope"

    def test_newest_first(self, audit_conn: sqlite3.Connection):
        first = insert_audit_entry(audit_conn, _entry())
        second = insert_audit_entry(audit_conn, _entry())
        rows = query_audit_trail(audit_conn)
        assert [row["id"] for row in rows] == [second, first]

    def test_limit(self, audit_conn: sqlite3.Connection):
        for _ in range(5):
            insert_audit_entry(audit_conn, _entry())
        assert len(query_audit_trail(audit_conn, limit=3)) == 3

    def test_date_range(self, audit_conn: sqlite3.Connection):
        insert_audit_entry(audit_conn, _entry())
        assert query_audit_trail(audit_conn, from_date="2000-01-01") != []
        assert query_audit_trail(audit_conn, to_date="2000-01-01") == []
