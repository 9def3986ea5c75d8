"""
Shared helpers used across modules.

These are shared infrastructure, not business logic.
Module-specific models should stay in their respective module directories.
"""

from datetime import datetime, timezone
from typing import Callable, Optional


# A clock returns the current time as an aware UTC datetime. Managers take
# one as a constructor argument so tests can move time explicitly.
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)


def mask_identifier(identifier: Optional[str]) -> str:
    """
    Mask a phone number or similar identifier for logs and display.

    Keeps the first two and last two characters: "9876543210" -> "98******10".
    """
    if not identifier or len(identifier) < 4:
        return "****"
    return identifier[:2] + "*" * (len(identifier) - 4) + identifier[-2:]
