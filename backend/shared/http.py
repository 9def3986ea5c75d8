"""
Helpers for the remote service response envelope.

The auth, OTP and sync services all answer with
{"success": bool, "data": {...}, "message": str, "error": ...}.
"""

from typing import Any

import httpx


def envelope_body(response: httpx.Response) -> dict[str, Any]:
    """Return the decoded JSON body, or an empty dict if it is not an object."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def envelope_data(response: httpx.Response) -> dict[str, Any]:
    """Return the "data" member, falling back to the whole body."""
    body = envelope_body(response)
    data = body.get("data")
    return data if isinstance(data, dict) else body


def envelope_message(response: httpx.Response, default: str) -> str:
    """Pick the most specific human-readable message from an error body."""
    body = envelope_body(response)
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    if body.get("message"):
        return body["message"]
    return default
