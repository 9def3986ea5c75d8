"""
Lifeline API package.

Provides the FastAPI application hosting the session, OTP and notification
queue managers.
"""

from .app import app, create_app

__all__ = ["app", "create_app"]
