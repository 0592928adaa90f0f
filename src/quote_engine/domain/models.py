"""Pydantic v2 models for quotes, event selections, and actors."""

from __future__ import annotations

import re
import uuid
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)

from quote_engine.domain.types import (
    ActorRole,
    BookingUrgency,
    Currency,
    EmailDeliveryStatus,
    PriceChangeReason,
    QuoteStatus,
    RegistrationStatus,
)

TWO_PLACES = Decimal("0.01")
MAX_TOTAL_PRICE = Decimal("1000000")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

Nights = Annotated[int, Field(ge=1, le=30)]
People = Annotated[int, Field(ge=1, le=100)]
Rooms = Annotated[int, Field(ge=1, le=50)]
LeadName = Annotated[str, Field(min_length=1, max_length=100)]
HotelName = Annotated[str, Field(min_length=1, max_length=200)]
WhatsIncluded = Annotated[str, Field(max_length=2000)]
InternalNotes = Annotated[str, Field(max_length=1000)]


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _money(value: object) -> object:
    """Reject float inputs and quantize monetary values to two decimal places."""
    if isinstance(value, float):
        raise ValueError("Use Decimal or string, not float, for monetary values")
    if isinstance(value, int | str):
        try:
            value = Decimal(str(value))
        except ArithmeticError:
            raise ValueError(f"Invalid monetary value: {value!r}") from None
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError("Monetary values must be finite")
        if value < 0:
            raise ValueError("Monetary values must not be negative")
        return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    return value


def _email(value: str) -> str:
    value = value.strip()
    if not _EMAIL_RE.match(value):
        raise ValueError("recipient_email must be a valid email address")
    return value


class EventSelection(BaseModel):
    """A priced add-on event attached to a quote."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1, max_length=200)
    unit_price: Decimal
    currency: Currency
    per_person: bool = False

    @field_validator("unit_price", mode="before")
    @classmethod
    def validate_unit_price(cls, v: object) -> object:
        """Reject floats and negative prices."""
        return _money(v)


class BookingInterestDetails(BaseModel):
    """Optional contact details a customer leaves when expressing interest."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    contact_name: str | None = Field(default=None, max_length=100)
    contact_email: str | None = Field(default=None, max_length=200)
    contact_phone: str | None = Field(default=None, max_length=50)
    urgency: BookingUrgency | None = None
    additional_requests: str | None = Field(default=None, max_length=1000)


class BookingInterest(BaseModel):
    """Customer-expressed intent to proceed, distinct from acceptance."""

    model_config = ConfigDict(frozen=True)

    expressed: bool = False
    expressed_at: datetime | None = None
    details: BookingInterestDetails | None = None


class PriceHistoryEntry(BaseModel):
    """One recorded change of a quote's total price."""

    model_config = ConfigDict(frozen=True)

    price: Decimal
    reason: PriceChangeReason
    timestamp: datetime
    actor_id: str


class Actor(BaseModel):
    """The authenticated back-office user performing an operation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    email: str = ""
    role: ActorRole
    is_approved: bool = False
    registration_status: RegistrationStatus = RegistrationStatus.PENDING


class _CommercialFields(BaseModel):
    """Commercial fields shared by quote creation payloads and stored quotes."""

    recipient_email: str
    lead_name: LeadName
    hotel_name: HotelName
    arrival_date: date
    number_of_nights: Nights
    number_of_people: People
    number_of_rooms: Rooms
    currency: Currency = Currency.GBP
    package_price: Decimal
    whats_included: WhatsIncluded = ""
    transfer_included: bool = False
    is_super_package: bool = False
    internal_notes: InternalNotes | None = None
    events: list[EventSelection] = Field(default_factory=list)

    @field_validator("package_price", mode="before")
    @classmethod
    def validate_package_price(cls, v: object) -> object:
        """Reject floats and negative prices."""
        return _money(v)

    @field_validator("recipient_email")
    @classmethod
    def validate_recipient_email(cls, v: str) -> str:
        """Ensure the recipient address looks deliverable."""
        return _email(v)

    @field_validator("lead_name", "hotel_name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        """Ensure names are not whitespace-only."""
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class QuoteCreate(_CommercialFields):
    """Payload accepted when an admin creates a quote.

    ``total_price`` is deliberately absent: totals are always recomputed.
    """

    model_config = ConfigDict(extra="forbid")

    enquiry_id: str = Field(min_length=1)
    agent_id: str | None = None

    @field_validator("arrival_date")
    @classmethod
    def arrival_must_not_be_past(cls, v: date) -> date:
        """New quotes cannot be priced for a date that has already passed."""
        if v < date.today():
            raise ValueError("arrival_date must not be in the past")
        return v


class QuotePatch(BaseModel):
    """Partial update of a quote's editable fields."""

    model_config = ConfigDict(extra="forbid")

    recipient_email: str | None = None
    lead_name: LeadName | None = None
    hotel_name: HotelName | None = None
    arrival_date: date | None = None
    number_of_nights: Nights | None = None
    number_of_people: People | None = None
    number_of_rooms: Rooms | None = None
    currency: Currency | None = None
    package_price: Decimal | None = None
    whats_included: WhatsIncluded | None = None
    transfer_included: bool | None = None
    is_super_package: bool | None = None
    internal_notes: InternalNotes | None = None
    events: list[EventSelection] | None = None

    @field_validator("package_price", mode="before")
    @classmethod
    def validate_package_price(cls, v: object) -> object:
        """Reject floats and negative prices."""
        if v is None:
            return v
        return _money(v)

    @field_validator("recipient_email")
    @classmethod
    def validate_recipient_email(cls, v: str | None) -> str | None:
        """Ensure the recipient address looks deliverable."""
        if v is None:
            return v
        return _email(v)

    def changes(self) -> dict[str, object]:
        """Return only the fields the caller actually supplied."""
        return self.model_dump(exclude_unset=True)


class Quote(_CommercialFields):
    """A priced, versioned proposal sent to a prospective customer."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    enquiry_id: str
    created_by: str
    agent_id: str | None = None
    total_price: Decimal = Decimal("0.00")
    version: int = Field(default=1, ge=1)
    status: QuoteStatus = QuoteStatus.DRAFT
    email_sent: bool = False
    email_sent_at: datetime | None = None
    email_delivery_status: EmailDeliveryStatus = EmailDeliveryStatus.PENDING
    email_message_id: str | None = None
    booking_interest: BookingInterest = Field(default_factory=BookingInterest)
    price_history: list[PriceHistoryEntry] = Field(default_factory=list)
    deleted_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    revision: int = Field(default=0, exclude=True)

    @field_validator("total_price", mode="before")
    @classmethod
    def validate_total_price(cls, v: object) -> object:
        """Totals are non-negative, two-decimal, and capped."""
        v = _money(v)
        if isinstance(v, Decimal) and v > MAX_TOTAL_PRICE:
            raise ValueError(f"total_price must not exceed {MAX_TOTAL_PRICE}")
        return v

    @computed_field  # type: ignore[prop-decorator]
    @property
    def reference(self) -> str:
        """Human-readable reference shown to customers, derived from the id."""
        return f"Q{self.id[-8:].upper()}"

    @property
    def is_deleted(self) -> bool:
        """Return True if the quote carries the soft-deletion marker."""
        return self.deleted_at is not None


class PriceRequest(BaseModel):
    """Inputs for a price preview before a quote is saved."""

    model_config = ConfigDict(extra="forbid")

    package_price: Decimal
    currency: Currency = Currency.GBP
    number_of_people: People
    number_of_rooms: Rooms = 1
    number_of_nights: Nights = 1
    events: list[EventSelection] = Field(default_factory=list)

    @field_validator("package_price", mode="before")
    @classmethod
    def validate_package_price(cls, v: object) -> object:
        """Reject floats and negative prices."""
        return _money(v)
