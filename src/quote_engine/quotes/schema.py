"""SQLite schema for quote persistence.

Provides the DDL function to create the quotes table following the same
pattern as ``init_audit_db()`` in ``quote_engine.audit.store``.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path


def init_quotes_table(conn: sqlite3.Connection) -> None:
    """Create the quotes table and its indexes if they do not already exist.

    Scalar fields get their own columns so export filters run in SQL;
    events, price history, and booking-interest contact details are stored
    as JSON.  ``total_price_minor`` mirrors ``total_price`` in integer minor
    units for range queries.  ``revision`` is the compare-and-swap counter
    bumped by every write.

    Args:
        conn: An open sqlite3.Connection (WAL mode recommended).
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS quotes (
            id TEXT PRIMARY KEY,
            enquiry_id TEXT NOT NULL,
            created_by TEXT NOT NULL,
            agent_id TEXT,
            recipient_email TEXT NOT NULL,
            lead_name TEXT NOT NULL,
            hotel_name TEXT NOT NULL,
            arrival_date TEXT NOT NULL,
            number_of_nights INTEGER NOT NULL,
            number_of_people INTEGER NOT NULL,
            number_of_rooms INTEGER NOT NULL,
            currency TEXT NOT NULL,
            package_price TEXT NOT NULL,
            total_price TEXT NOT NULL,
            total_price_minor INTEGER NOT NULL,
            whats_included TEXT NOT NULL DEFAULT '',
            transfer_included INTEGER NOT NULL DEFAULT 0,
            is_super_package INTEGER NOT NULL DEFAULT 0,
            internal_notes TEXT,
            events_json TEXT NOT NULL DEFAULT '[]',
            version INTEGER NOT NULL DEFAULT 1,
            status TEXT NOT NULL,
            email_sent INTEGER NOT NULL DEFAULT 0,
            email_sent_at TEXT,
            email_delivery_status TEXT NOT NULL,
            email_message_id TEXT,
            booking_interest_expressed INTEGER NOT NULL DEFAULT 0,
            booking_interest_at TEXT,
            booking_interest_json TEXT,
            price_history_json TEXT NOT NULL DEFAULT '[]',
            deleted_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            revision INTEGER NOT NULL DEFAULT 0
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_quotes_status ON quotes (status)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_quotes_created_at ON quotes (created_at)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_quotes_total ON quotes (total_price_minor)")
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_quotes_email_status ON quotes (email_delivery_status)"
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_quotes_created_by ON quotes (created_by)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_quotes_agent ON quotes (agent_id)")

    conn.commit()


def init_quotes_db(db_path: Path | str) -> sqlite3.Connection:
    """Open the quotes database in WAL mode and ensure the schema exists.

    Args:
        db_path: Path to the SQLite database file (or ``":memory:"``).

    Returns:
        An open sqlite3.Connection usable from worker threads.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    init_quotes_table(conn)
    return conn
