"""SQLite-backed quote store with compare-and-swap writes.

Accepts a sqlite3.Connection, uses parameterized queries exclusively, and
commits synchronously after writes.  Full-row writes are conditional on the
``revision`` the caller read, so two concurrent writers can never both
succeed against the same prior state.  Engagement writes (view marking and
booking interest) are single conditional UPDATEs that touch only their own
columns.
"""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime
from typing import Any

from quote_engine.domain.errors import QuoteNotFoundError, StaleVersionError
from quote_engine.domain.models import BookingInterestDetails, Quote
from quote_engine.domain.types import QuoteStatus
from quote_engine.quotes.serializers import (
    QUOTE_COLUMNS,
    format_timestamp,
    quote_to_row,
    row_to_quote,
)

_SELECT_COLUMNS = ", ".join(QUOTE_COLUMNS)


class QuoteStore:
    """Persist and retrieve quotes in SQLite.

    Rows are never deleted; soft-deleted quotes are hidden from reads unless
    ``include_deleted`` is set.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  ``quotes`` table (see ``init_quotes_table``).
        """
        self._conn = conn
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def insert(self, quote: Quote) -> Quote:
        """Insert a new quote row.

        Returns:
            The stored quote (revision 0).
        """
        row = quote_to_row(quote)
        placeholders = ", ".join("?" for _ in QUOTE_COLUMNS)
        with self._lock:
            self._conn.execute(
                f"INSERT INTO quotes ({_SELECT_COLUMNS}) VALUES ({placeholders})",
                [row[column] for column in QUOTE_COLUMNS],
            )
            self._conn.commit()
        return quote

    def save(self, quote: Quote) -> Quote:
        """Write *quote* back if nobody else has written it since it was read.

        The row is only replaced while its stored revision still equals
        ``quote.revision``; the stored copy then carries ``revision + 1``.

        Args:
            quote: A modified copy of a quote previously returned by this store.

        Returns:
            The quote as stored, with its new revision.

        Raises:
            QuoteNotFoundError: If the row does not exist.
            StaleVersionError: If another write landed first.
        """
        stored = quote.model_copy(update={"revision": quote.revision + 1})
        row = quote_to_row(stored)
        assignments = ", ".join(f"{column} = ?" for column in QUOTE_COLUMNS if column != "id")
        params: list[Any] = [row[column] for column in QUOTE_COLUMNS if column != "id"]
        params.extend([quote.id, quote.revision])

        with self._lock:
            cursor = self._conn.execute(
                f"UPDATE quotes SET {assignments} WHERE id = ? AND revision = ?",
                params,
            )
            self._conn.commit()
            if cursor.rowcount == 1:
                return stored

            current = self.get(quote.id, include_deleted=True)
        if current is None:
            raise QuoteNotFoundError(quote.id)
        raise StaleVersionError(quote.id, quote.version, current.version)

    def mark_viewed(self, quote_id: str, now: datetime) -> bool:
        """Move a ``sent`` quote to ``viewed``.

        Returns:
            True if this call performed the transition, False if the quote
            was not in ``sent`` (already viewed, still draft, terminal, or
            deleted).
        """
        with self._lock:
            cursor = self._conn.execute(
                """
                UPDATE quotes
                SET status = ?, updated_at = ?, revision = revision + 1
                WHERE id = ? AND status = ? AND deleted_at IS NULL
                """,
                (QuoteStatus.VIEWED.value, format_timestamp(now), quote_id, QuoteStatus.SENT.value),
            )
            self._conn.commit()
        return cursor.rowcount == 1

    def record_booking_interest(
        self,
        quote_id: str,
        expressed_at: datetime,
        details: BookingInterestDetails | None = None,
    ) -> bool:
        """Record the first expression of booking interest on a quote.

        Returns:
            True if this call recorded the interest, False if interest had
            already been expressed (the original timestamp is kept).
        """
        details_json = details.model_dump_json(exclude_none=True) if details is not None else None
        timestamp = format_timestamp(expressed_at)
        with self._lock:
            cursor = self._conn.execute(
                """
                UPDATE quotes
                SET booking_interest_expressed = 1,
                    booking_interest_at = ?,
                    booking_interest_json = ?,
                    updated_at = ?,
                    revision = revision + 1
                WHERE id = ? AND booking_interest_expressed = 0 AND deleted_at IS NULL
                """,
                (timestamp, details_json, timestamp, quote_id),
            )
            self._conn.commit()
        return cursor.rowcount == 1

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def _select(self, query: str, params: list[Any]) -> list[sqlite3.Row]:
        with self._lock:
            prev_factory = self._conn.row_factory
            self._conn.row_factory = sqlite3.Row
            try:
                return self._conn.execute(query, params).fetchall()
            finally:
                self._conn.row_factory = prev_factory

    def get(self, quote_id: str, *, include_deleted: bool = False) -> Quote | None:
        """Load one quote by id, or None if unknown (or soft-deleted)."""
        query = f"SELECT {_SELECT_COLUMNS} FROM quotes WHERE id = ?"
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        rows = self._select(query, [quote_id])
        return row_to_quote(rows[0]) if rows else None

    def search(
        self,
        *,
        text: str | None = None,
        status: QuoteStatus | None = None,
        created_from: str | None = None,
        created_before: str | None = None,
        min_price_minor: int | None = None,
        max_price_minor: int | None = None,
        email_status: str | None = None,
        email_not_sent: bool = False,
        booking_interest: bool | None = None,
        is_super_package: bool | None = None,
        created_by: str | None = None,
        limit: int = 100,
    ) -> list[Quote]:
        """Return non-deleted quotes matching every supplied filter.

        All filters are optional.  Results are ordered newest first.

        Args:
            text: Case-insensitive substring over lead name, hotel name,
                what's included, and internal notes.
            status: Exact quote status.
            created_from: Inclusive lower bound on ``created_at`` (ISO 8601).
            created_before: Exclusive upper bound on ``created_at`` (ISO 8601).
            min_price_minor: Inclusive lower bound on the total, in minor units.
            max_price_minor: Inclusive upper bound on the total, in minor units.
            email_status: Exact email delivery status.
            email_not_sent: Only quotes whose email was never sent.
            booking_interest: Filter on whether interest was expressed.
            is_super_package: Filter on the super-package flag.
            created_by: Creating actor id.
            limit: Maximum number of rows to return.
        """
        conditions: list[str] = ["deleted_at IS NULL"]
        params: list[Any] = []

        if text:
            pattern = f"%{text.lower()}%"
            conditions.append(
                "(LOWER(lead_name) LIKE ? OR LOWER(hotel_name) LIKE ? "
                "OR LOWER(whats_included) LIKE ? OR LOWER(COALESCE(internal_notes, '')) LIKE ?)"
            )
            params.extend([pattern] * 4)

        if status is not None:
            conditions.append("status = ?")
            params.append(status.value)

        if created_from is not None:
            conditions.append("created_at >= ?")
            params.append(created_from)

        if created_before is not None:
            conditions.append("created_at < ?")
            params.append(created_before)

        if min_price_minor is not None:
            conditions.append("total_price_minor >= ?")
            params.append(min_price_minor)

        if max_price_minor is not None:
            conditions.append("total_price_minor <= ?")
            params.append(max_price_minor)

        if email_not_sent:
            conditions.append("email_sent = 0")
        elif email_status is not None:
            conditions.append("email_delivery_status = ?")
            params.append(email_status)

        if booking_interest is not None:
            conditions.append("booking_interest_expressed = ?")
            params.append(int(booking_interest))

        if is_super_package is not None:
            conditions.append("is_super_package = ?")
            params.append(int(is_super_package))

        if created_by is not None:
            conditions.append("created_by = ?")
            params.append(created_by)

        query = (
            f"SELECT {_SELECT_COLUMNS} FROM quotes WHERE {' AND '.join(conditions)} "
            "ORDER BY created_at DESC, id DESC LIMIT ?"
        )
        params.append(limit)
        return [row_to_quote(row) for row in self._select(query, params)]

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def count_by_status(self) -> dict[str, int]:
        """Live quote counts keyed by status value."""
        rows = self._select(
            "SELECT status, COUNT(*) AS n FROM quotes WHERE deleted_at IS NULL GROUP BY status",
            [],
        )
        return {row["status"]: row["n"] for row in rows}

    def count_by_delivery_status(self) -> dict[str, int]:
        """Counts of sent quote emails keyed by delivery status."""
        rows = self._select(
            "SELECT email_delivery_status AS status, COUNT(*) AS n FROM quotes "
            "WHERE deleted_at IS NULL AND email_sent = 1 GROUP BY email_delivery_status",
            [],
        )
        return {row["status"]: row["n"] for row in rows}

    def count_with_booking_interest(self) -> int:
        """Number of live quotes whose customer expressed booking interest."""
        rows = self._select(
            "SELECT COUNT(*) AS n FROM quotes "
            "WHERE deleted_at IS NULL AND booking_interest_expressed = 1",
            [],
        )
        return int(rows[0]["n"])

    def count_created_since(self, since: datetime) -> int:
        """Number of live quotes created at or after *since*."""
        rows = self._select(
            "SELECT COUNT(*) AS n FROM quotes WHERE deleted_at IS NULL AND created_at >= ?",
            [format_timestamp(since)],
        )
        return int(rows[0]["n"])

    def price_totals(self) -> dict[bool, sqlite3.Row]:
        """Count and minor-unit sum/min/max of totals, keyed by super-package flag.

        A flag with no live quotes is absent from the result.
        """
        rows = self._select(
            "SELECT is_super_package, COUNT(*) AS n, SUM(total_price_minor) AS total, "
            "MIN(total_price_minor) AS minimum, MAX(total_price_minor) AS maximum "
            "FROM quotes WHERE deleted_at IS NULL GROUP BY is_super_package",
            [],
        )
        return {bool(row["is_super_package"]): row for row in rows}
