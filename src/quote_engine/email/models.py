"""Pydantic v2 models for the quote email domain.

Provides frozen (immutable) models for outbound quote emails, the company
details printed in them, and the result of a dispatch.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from quote_engine.domain.types import EmailDeliveryStatus, QuoteStatus


class CompanyDetails(BaseModel):
    """Sender details shown in the footer of customer emails."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str = ""
    phone: str = ""


class OutboundEmail(BaseModel):
    """A rendered email ready for the mail transport."""

    model_config = ConfigDict(frozen=True)

    to: str
    subject: str
    html: str
    text: str = ""


class DispatchResult(BaseModel):
    """Quote state after a successful send or retry."""

    model_config = ConfigDict(frozen=True)

    quote_id: str
    message_id: str
    version: int
    status: QuoteStatus
    email_delivery_status: EmailDeliveryStatus
    email_sent_at: datetime | None = None
