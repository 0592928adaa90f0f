"""Render a quote into the customer-facing email.

Every value taken from the quote is HTML-escaped.  Internal notes are never
rendered, and events priced in a currency other than the quote's are left
out because they are not part of the total.
"""

from __future__ import annotations

from decimal import Decimal
from html import escape

from quote_engine.domain.models import Quote
from quote_engine.domain.types import Currency
from quote_engine.email.models import CompanyDetails, OutboundEmail
from quote_engine.pricing.calculator import compute_total, derive_unit_prices

CURRENCY_SYMBOLS: dict[Currency, str] = {
    Currency.GBP: "£",
    Currency.EUR: "€",
    Currency.USD: "$",
}

QUOTE_VALIDITY_DAYS = 7


def format_money(amount: Decimal, currency: Currency) -> str:
    """Format *amount* with its currency symbol and thousands separators."""
    return f"{CURRENCY_SYMBOLS[currency]}{amount:,.2f}"


def render_quote_email(
    quote: Quote,
    *,
    tracking_url: str,
    company: CompanyDetails,
) -> OutboundEmail:
    """Build the quote email for *quote*.

    Args:
        quote: The quote being sent.
        tracking_url: Signed link the customer follows to view and respond.
        company: Sender details for the header and footer.

    Returns:
        The email with HTML and plain-text bodies.
    """
    breakdown = compute_total(
        quote.package_price, quote.currency, quote.events, quote.number_of_people
    )
    unit_prices = derive_unit_prices(
        quote.total_price,
        quote.number_of_people,
        quote.number_of_rooms,
        quote.number_of_nights,
    )

    def money(amount: Decimal) -> str:
        return escape(format_money(amount, quote.currency))

    subject = f"Your Quote from {company.name} - {quote.reference}"

    event_rows: list[str] = []
    event_lines: list[str] = []
    for event in breakdown.per_person_events + breakdown.flat_events:
        basis = f"{money(event.unit_price)} x {event.quantity}" if event.per_person else "per group"
        event_rows.append(
            f"<tr><td>{escape(event.name)}</td><td>{basis}</td>"
            f"<td>{money(event.contribution)}</td></tr>"
        )
        event_lines.append(f"  - {event.name}: {format_money(event.contribution, quote.currency)}")

    version_note = (
        f'<p class="version">Version {quote.version} - Updated Quote</p>'
        if quote.version > 1
        else ""
    )
    events_table = (
        "<h3>Included Events</h3><table>"
        "<tr><th>Event</th><th>Price</th><th>Total</th></tr>"
        + "".join(event_rows)
        + "</table>"
        if event_rows
        else ""
    )
    included = (
        f"<h3>What's Included</h3><p>{escape(quote.whats_included)}</p>"
        if quote.whats_included
        else ""
    )
    transfer = "<li>Airport transfers included</li>" if quote.transfer_included else ""
    contact_parts = [escape(part) for part in (company.email, company.phone) if part]

    html = f"""<!DOCTYPE html>
<html>
<body>
  <h1>{escape(company.name)}</h1>
  <h2>Your Personalized Quote</h2>
  <p>Quote Reference: <strong>{escape(quote.reference)}</strong></p>
  {version_note}
  <p>Dear {escape(quote.lead_name)},</p>
  <ul>
    <li>Hotel: {escape(quote.hotel_name)}</li>
    <li>Arrival: {escape(quote.arrival_date.strftime("%d %B %Y"))}</li>
    <li>Nights: {quote.number_of_nights}</li>
    <li>Guests: {quote.number_of_people}</li>
    <li>Rooms: {quote.number_of_rooms}</li>
    {transfer}
  </ul>
  {included}
  {events_table}
  <h3>Total Price: {money(quote.total_price)}</h3>
  <p>That is {money(unit_prices.per_person)} per person.</p>
  <p><a href="{escape(tracking_url, quote=True)}">View your quote and let us know you're interested</a></p>
  <p>This quote is valid for {QUOTE_VALIDITY_DAYS} days from the date of issue.</p>
  <p>{" | ".join(contact_parts)}</p>
</body>
</html>
"""

    text_lines = [
        f"Your Personalized Quote - {quote.reference}",
        "",
        f"Dear {quote.lead_name},",
        "",
        f"Hotel: {quote.hotel_name}",
        f"Arrival: {quote.arrival_date.strftime('%d %B %Y')}",
        f"Nights: {quote.number_of_nights}",
        f"Guests: {quote.number_of_people}",
        f"Rooms: {quote.number_of_rooms}",
    ]
    if event_lines:
        text_lines += ["", "Included events:", *event_lines]
    text_lines += [
        "",
        f"Total price: {format_money(quote.total_price, quote.currency)}",
        "",
        f"View your quote: {tracking_url}",
    ]

    return OutboundEmail(
        to=quote.recipient_email,
        subject=subject,
        html=html,
        text="\n".join(text_lines),
    )
