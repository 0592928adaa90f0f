"""Quote email rendering, transport, and dispatch."""

from quote_engine.email.dispatcher import EmailDispatchCoordinator
from quote_engine.email.models import CompanyDetails, DispatchResult, OutboundEmail
from quote_engine.email.renderer import render_quote_email
from quote_engine.email.transport import (
    MailTransport,
    MailTransportError,
    ResendTransport,
    TransientMailError,
)

__all__ = [
    "CompanyDetails",
    "DispatchResult",
    "EmailDispatchCoordinator",
    "MailTransport",
    "MailTransportError",
    "OutboundEmail",
    "ResendTransport",
    "TransientMailError",
    "render_quote_email",
]
