"""
Shared infrastructure for the Lifeline core.

This package contains cross-cutting concerns that are used by multiple modules:
- config: Centralized settings management
- database: Supabase client factory
- exceptions: Base exception classes
- scheduler: Cancellable periodic and delayed tasks

Note: Business logic should NOT go here. This is for infrastructure only.
"""

from .config import Settings, get_settings
from .exceptions import (
    LifelineError,
    AuthenticationError,
    ExternalServiceError,
)
from .models import Clock, utc_now, mask_identifier
from .scheduler import PeriodicTask, DelayedCall

__all__ = [
    "Settings",
    "get_settings",
    "LifelineError",
    "AuthenticationError",
    "ExternalServiceError",
    "Clock",
    "utc_now",
    "mask_identifier",
    "PeriodicTask",
    "DelayedCall",
]
