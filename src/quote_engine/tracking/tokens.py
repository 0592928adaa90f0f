"""Signed, expiring tracking tokens embedded in quote emails.

A token is ``<payload>.<signature>`` where ``payload`` is the base64url JSON
claims and ``signature`` is the base64url HMAC-SHA256 of the payload string
under the configured secret.  The signature is checked before the payload is
decoded, so altering any character of either part fails validation.  A
change that breaks the structure itself (a second ``.``, a non-ASCII
character) is reported as malformed rather than tampered.

Claims:
    q: quote id
    iat: issue time (epoch seconds)
    exp: expiry time (epoch seconds)
    n: random nonce, so two tokens for the same quote differ
    r: keyed hash of the recipient email (optional)

Tokens are never persisted.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from urllib.parse import quote as url_quote

from pydantic import BaseModel, SecretStr

MAX_TOKEN_LENGTH = 2048
DEFAULT_TTL = timedelta(days=30)
CLICK_PATH = "/api/tracking/click"


class TokenFailure(StrEnum):
    """Why a tracking token was rejected."""

    MALFORMED = "MALFORMED"
    TAMPERED = "TAMPERED"
    EXPIRED = "EXPIRED"
    RECIPIENT_MISMATCH = "RECIPIENT_MISMATCH"


class TokenValidation(BaseModel, frozen=True):
    """Outcome of :meth:`TrackingTokenService.validate_token`."""

    valid: bool
    quote_id: str | None = None
    failure: TokenFailure | None = None
    issued_at: datetime | None = None
    expires_at: datetime | None = None

    @classmethod
    def rejected(cls, failure: TokenFailure, quote_id: str | None = None) -> TokenValidation:
        return cls(valid=False, failure=failure, quote_id=quote_id)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class TrackingTokenService:
    """Issues and validates tracking tokens and builds the links carrying them.

    Args:
        secret: HMAC key; must be non-empty.
        public_base_url: Origin used to build absolute tracking links.
        booking_interest_path: Customer-facing booking-interest page.
        ttl: Default token lifetime.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        secret: str | SecretStr,
        *,
        public_base_url: str = "",
        booking_interest_path: str = "/booking/interest",
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        raw_secret = secret.get_secret_value() if isinstance(secret, SecretStr) else secret
        if not raw_secret:
            raise ValueError("A tracking secret is required to sign tokens")
        self._key = raw_secret.encode("utf-8")
        self._base_url = public_base_url.rstrip("/")
        self._booking_interest_path = booking_interest_path
        self._ttl = ttl
        self._clock = clock or _utcnow

    # ------------------------------------------------------------------
    # Issuing
    # ------------------------------------------------------------------

    def issue_token(
        self,
        quote_id: str,
        recipient: str | None = None,
        ttl: timedelta | None = None,
    ) -> str:
        """Return a new signed token for *quote_id*.

        Args:
            quote_id: The quote the token grants engagement access to.
            recipient: Email address the token is bound to, if any.
            ttl: Lifetime override; defaults to the service TTL.  A zero or
                negative lifetime yields a token that is already expired.
        """
        now = self._clock()
        claims: dict[str, str | int] = {
            "q": quote_id,
            "iat": int(now.timestamp()),
            "exp": int((now + (self._ttl if ttl is None else ttl)).timestamp()),
            "n": secrets.token_hex(8),
        }
        if recipient:
            claims["r"] = self.fingerprint(recipient.strip().lower(), purpose="recipient")

        payload = _b64encode(json.dumps(claims, separators=(",", ":")).encode("utf-8"))
        return f"{payload}.{self._sign(payload)}"

    def tracking_url(self, token: str) -> str:
        """Absolute click-tracking link embedding *token*."""
        return f"{self._base_url}{CLICK_PATH}?t={url_quote(token, safe='')}"

    def booking_interest_url(self, token: str) -> str:
        """Absolute customer booking-interest page link embedding *token*."""
        return f"{self._base_url}{self._booking_interest_path}?t={url_quote(token, safe='')}"

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_token(self, token: str | None, recipient: str | None = None) -> TokenValidation:
        """Check structure, signature, expiry, and recipient binding in that order.

        Never raises; every failure is reported through the result.
        """
        if (
            not token
            or not isinstance(token, str)
            or len(token) > MAX_TOKEN_LENGTH
            or not token.isascii()
            or token.count(".") != 1
        ):
            return TokenValidation.rejected(TokenFailure.MALFORMED)

        payload, signature = token.split(".")
        if not payload or not signature:
            return TokenValidation.rejected(TokenFailure.MALFORMED)

        if not hmac.compare_digest(self._sign(payload), signature):
            return TokenValidation.rejected(TokenFailure.TAMPERED)

        try:
            claims = json.loads(_b64decode(payload))
        except (binascii.Error, UnicodeDecodeError, ValueError):
            return TokenValidation.rejected(TokenFailure.MALFORMED)

        if (
            not isinstance(claims, dict)
            or not isinstance(claims.get("q"), str)
            or not isinstance(claims.get("iat"), int)
            or not isinstance(claims.get("exp"), int)
        ):
            return TokenValidation.rejected(TokenFailure.MALFORMED)

        quote_id: str = claims["q"]
        if self._clock().timestamp() >= claims["exp"]:
            return TokenValidation.rejected(TokenFailure.EXPIRED, quote_id)

        bound = claims.get("r")
        if recipient is not None and isinstance(bound, str):
            expected = self.fingerprint(recipient.strip().lower(), purpose="recipient")
            if not hmac.compare_digest(expected, bound):
                return TokenValidation.rejected(TokenFailure.RECIPIENT_MISMATCH, quote_id)

        return TokenValidation(
            valid=True,
            quote_id=quote_id,
            issued_at=datetime.fromtimestamp(claims["iat"], tz=UTC),
            expires_at=datetime.fromtimestamp(claims["exp"], tz=UTC),
        )

    # ------------------------------------------------------------------
    # Keyed hashing
    # ------------------------------------------------------------------

    def fingerprint(self, value: str, *, purpose: str) -> str:
        """Keyed SHA-256 of *value*, scoped by *purpose*, as 32 hex chars.

        Used for recipient binding and for storing client IPs without
        keeping the raw address.
        """
        message = f"{purpose}:{value}".encode()
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()[:32]

    def _sign(self, payload: str) -> str:
        digest = hmac.new(self._key, payload.encode("ascii"), hashlib.sha256).digest()
        return _b64encode(digest)
