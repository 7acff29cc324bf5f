"""Guardian approval tokens and QR credentials.

All randomness comes from ``secrets``. Tokens carry 256 bits, QR suffixes
128 bits, so neither can be guessed from the request id or from each other.
"""
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from dormlink.config import settings
from dormlink.errors import NotFound

QR_PREFIX = "OUTING"


def issue(now: Optional[datetime] = None) -> tuple[str, datetime]:
    """Return a fresh guardian token and its expiry."""
    now = now or datetime.now(timezone.utc)
    token = secrets.token_urlsafe(32)
    return token, now + timedelta(hours=settings.GUARDIAN_TOKEN_TTL_HOURS)


def build_link(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/guardian/approve/{token}"


def token_digest(token: str) -> str:
    """SHA-256 of a token; kept after the token itself is cleared."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def mint_qr(request_id: str) -> str:
    """Bearer credential bound to one outing: OUTING-{id}-{suffix}."""
    return f"{QR_PREFIX}-{request_id}-{secrets.token_hex(16).upper()}"


def parse_qr(qr_data: str) -> str:
    """Return the request id embedded in a QR credential."""
    prefix, sep, rest = qr_data.partition("-")
    request_id, sep2, suffix = rest.rpartition("-")
    if prefix != QR_PREFIX or not sep or not sep2 or not request_id or not suffix:
        raise NotFound("Unrecognised QR credential")
    return request_id
