"""SQLite-backed audit trail store with WAL mode and indexed queries.

Provides functions to initialize the database, append audit entries, and
query the audit trail with flexible filtering.  The application only ever
inserts rows; there is no update or delete path.  Uses parameterized
queries exclusively (never string concatenation) to prevent SQL injection.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from quote_engine.audit.models import AuditEntry


def init_audit_db(db_path: Path | str) -> sqlite3.Connection:
    """Create and initialize the audit database with WAL mode and indexes.

    Args:
        db_path: Path to the SQLite database file (or ``":memory:"``).

    Returns:
        An open sqlite3.Connection with WAL mode enabled.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL,
            action TEXT NOT NULL,
            actor_id TEXT NOT NULL,
            actor_email TEXT,
            actor_role TEXT NOT NULL,
            quote_id TEXT,
            client_ip TEXT,
            user_agent TEXT,
            success INTEGER NOT NULL,
            failure_reason TEXT,
            payload TEXT,
            passive INTEGER NOT NULL DEFAULT 0
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_quote ON audit_log (quote_id, timestamp)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_actor ON audit_log (actor_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_action ON audit_log (action)")

    conn.commit()
    return conn


def insert_audit_entry(conn: sqlite3.Connection, entry: AuditEntry) -> int:
    """Append an audit entry to the database.

    Serializes the payload dict to a JSON string if present; values JSON
    cannot represent natively (Decimal, datetime) are stored as strings.

    Args:
        conn: An open database connection.
        entry: The audit entry to insert.

    Returns:
        The row ID of the inserted entry.
    """
    payload_json: str | None = None
    if entry.payload is not None:
        payload_json = json.dumps(entry.payload, default=str, sort_keys=True)

    timestamp = datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")

    cursor = conn.execute(
        """
        INSERT INTO audit_log (
            timestamp, action, actor_id, actor_email, actor_role, quote_id,
            client_ip, user_agent, success, failure_reason, payload, passive
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            timestamp,
            entry.action.value,
            entry.actor_id,
            entry.actor_email,
            entry.actor_role,
            entry.quote_id,
            entry.client_ip,
            entry.user_agent,
            int(entry.success),
            entry.failure_reason,
            payload_json,
            int(entry.passive),
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0


def query_audit_trail(
    conn: sqlite3.Connection,
    *,
    quote_id: str | None = None,
    actor_id: str | None = None,
    action: str | None = None,
    success: bool | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Query the audit trail with flexible filtering.

    All filters are optional.  Results are ordered newest first.

    Args:
        conn: An open database connection.
        quote_id: Filter by target quote id (exact match).
        actor_id: Filter by actor id (exact match).
        action: Filter by action kind (exact match).
        success: Filter by outcome.
        from_date: Filter entries on or after this ISO 8601 date.
        to_date: Filter entries on or before this ISO 8601 date.
        limit: Maximum number of results to return (default 50).

    Returns:
        A list of dicts, one per matching audit entry, newest first.
    """
    conditions: list[str] = []
    params: list[str | int] = []

    if quote_id is not None:
        conditions.append("quote_id = ?")
        params.append(quote_id)

    if actor_id is not None:
        conditions.append("actor_id = ?")
        params.append(actor_id)

    if action is not None:
        conditions.append("action = ?")
        params.append(action)

    if success is not None:
        conditions.append("success = ?")
        params.append(int(success))

    if from_date is not None:
        conditions.append("timestamp >= ?")
        params.append(from_date)

    if to_date is not None:
        conditions.append("timestamp <= ?")
        params.append(to_date)

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)

    query = f"SELECT * FROM audit_log {where_clause} ORDER BY timestamp DESC, id DESC LIMIT ?"
    params.append(limit)

    cursor = conn.execute(query, params)
    columns = [description[0] for description in cursor.description]
    rows = cursor.fetchall()

    results: list[dict[str, Any]] = []
    for row in rows:
        row_dict = dict(zip(columns, row, strict=True))
        row_dict["success"] = bool(row_dict["success"])
        row_dict["passive"] = bool(row_dict["passive"])
        if row_dict.get("payload") is not None:
            row_dict["payload"] = json.loads(row_dict["payload"])
        results.append(row_dict)

    return results


def close_audit_db(conn: sqlite3.Connection) -> None:
    """Close the audit database connection.

    Args:
        conn: The database connection to close.
    """
    conn.close()
