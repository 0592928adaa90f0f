"""Row conversion helpers for persisted quotes.

Money is stored as strings so no precision is lost; the pydantic models turn
them back into ``Decimal`` on the way in.  Datetimes are ISO 8601 strings in
UTC, which also keeps ``created_at`` range filters lexically comparable.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from quote_engine.domain.models import Quote
from quote_engine.pricing.calculator import to_minor_units

QUOTE_COLUMNS: tuple[str, ...] = (
    "id",
    "enquiry_id",
    "created_by",
    "agent_id",
    "recipient_email",
    "lead_name",
    "hotel_name",
    "arrival_date",
    "number_of_nights",
    "number_of_people",
    "number_of_rooms",
    "currency",
    "package_price",
    "total_price",
    "total_price_minor",
    "whats_included",
    "transfer_included",
    "is_super_package",
    "internal_notes",
    "events_json",
    "version",
    "status",
    "email_sent",
    "email_sent_at",
    "email_delivery_status",
    "email_message_id",
    "booking_interest_expressed",
    "booking_interest_at",
    "booking_interest_json",
    "price_history_json",
    "deleted_at",
    "created_at",
    "updated_at",
    "revision",
)


def format_timestamp(value: datetime | None) -> str | None:
    """Render a datetime as the ISO 8601 string stored in SQLite."""
    return value.isoformat() if value is not None else None


def quote_to_row(quote: Quote) -> dict[str, Any]:
    """Flatten a :class:`Quote` into a column -> value mapping.

    Args:
        quote: The quote to persist.

    Returns:
        A dict keyed by every name in :data:`QUOTE_COLUMNS`.
    """
    details = quote.booking_interest.details
    return {
        "id": quote.id,
        "enquiry_id": quote.enquiry_id,
        "created_by": quote.created_by,
        "agent_id": quote.agent_id,
        "recipient_email": quote.recipient_email,
        "lead_name": quote.lead_name,
        "hotel_name": quote.hotel_name,
        "arrival_date": quote.arrival_date.isoformat(),
        "number_of_nights": quote.number_of_nights,
        "number_of_people": quote.number_of_people,
        "number_of_rooms": quote.number_of_rooms,
        "currency": quote.currency.value,
        "package_price": str(quote.package_price),
        "total_price": str(quote.total_price),
        "total_price_minor": to_minor_units(quote.total_price),
        "whats_included": quote.whats_included,
        "transfer_included": int(quote.transfer_included),
        "is_super_package": int(quote.is_super_package),
        "internal_notes": quote.internal_notes,
        "events_json": json.dumps([e.model_dump(mode="json") for e in quote.events]),
        "version": quote.version,
        "status": quote.status.value,
        "email_sent": int(quote.email_sent),
        "email_sent_at": format_timestamp(quote.email_sent_at),
        "email_delivery_status": quote.email_delivery_status.value,
        "email_message_id": quote.email_message_id,
        "booking_interest_expressed": int(quote.booking_interest.expressed),
        "booking_interest_at": format_timestamp(quote.booking_interest.expressed_at),
        "booking_interest_json": (
            details.model_dump_json(exclude_none=True) if details is not None else None
        ),
        "price_history_json": json.dumps(
            [entry.model_dump(mode="json") for entry in quote.price_history]
        ),
        "deleted_at": format_timestamp(quote.deleted_at),
        "created_at": format_timestamp(quote.created_at),
        "updated_at": format_timestamp(quote.updated_at),
        "revision": quote.revision,
    }


def row_to_quote(row: Mapping[str, Any]) -> Quote:
    """Rebuild a :class:`Quote` from a ``sqlite3.Row`` or dict.

    Args:
        row: A row selected with every column in :data:`QUOTE_COLUMNS`.

    Returns:
        The validated quote, including its store ``revision``.
    """
    details_json = row["booking_interest_json"]
    return Quote.model_validate(
        {
            "id": row["id"],
            "enquiry_id": row["enquiry_id"],
            "created_by": row["created_by"],
            "agent_id": row["agent_id"],
            "recipient_email": row["recipient_email"],
            "lead_name": row["lead_name"],
            "hotel_name": row["hotel_name"],
            "arrival_date": row["arrival_date"],
            "number_of_nights": row["number_of_nights"],
            "number_of_people": row["number_of_people"],
            "number_of_rooms": row["number_of_rooms"],
            "currency": row["currency"],
            "package_price": row["package_price"],
            "total_price": row["total_price"],
            "whats_included": row["whats_included"],
            "transfer_included": bool(row["transfer_included"]),
            "is_super_package": bool(row["is_super_package"]),
            "internal_notes": row["internal_notes"],
            "events": json.loads(row["events_json"]),
            "version": row["version"],
            "status": row["status"],
            "email_sent": bool(row["email_sent"]),
            "email_sent_at": row["email_sent_at"],
            "email_delivery_status": row["email_delivery_status"],
            "email_message_id": row["email_message_id"],
            "booking_interest": {
                "expressed": bool(row["booking_interest_expressed"]),
                "expressed_at": row["booking_interest_at"],
                "details": json.loads(details_json) if details_json else None,
            },
            "price_history": json.loads(row["price_history_json"]),
            "deleted_at": row["deleted_at"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
            "revision": row["revision"],
        }
    )
