"""
Local inspection of access tokens.

Only the embedded expiry claim is read, for refresh scheduling. Signatures
are never checked here; the auth service stays authoritative for that.
"""

from datetime import datetime, timezone
from typing import Optional

import jwt


def decode_expiry(token: Optional[str]) -> Optional[datetime]:
    """Return the token's "exp" claim as an aware datetime, or None."""
    if not token:
        return None
    try:
        claims = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False},
        )
    except jwt.InvalidTokenError:
        return None

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)


def seconds_until_expiry(
    token: Optional[str],
    now: datetime,
    issued_at: Optional[datetime] = None,
    expires_in: Optional[int] = None,
) -> Optional[float]:
    """
    Remaining lifetime of an access token in seconds.

    Uses the embedded expiry when present. Opaque tokens fall back to the
    issued lifetime counted from issued_at. Returns None when neither is known.
    """
    expires_at = decode_expiry(token)
    if expires_at is None and expires_in is not None and issued_at is not None:
        return expires_in - (now - issued_at).total_seconds()
    if expires_at is None:
        return None
    return (expires_at - now).total_seconds()
