"""
Payload builders for the four notification producers.

Each builder returns the display payload (title, body, tag, data) that is
queued and later handed to the sync service.
"""

from typing import Any, Optional

from shared.models import Clock, utc_now

from .models import NotificationKind


def _notification_id(prefix: str, ref: Any, clock: Clock) -> str:
    return f"{prefix}-{ref}-{int(clock().timestamp() * 1000)}"


def build_emergency_payload(
    blood_request: dict[str, Any],
    clock: Clock = utc_now,
) -> dict[str, Any]:
    """Critical blood request near the donor."""
    hospital = blood_request.get("hospital") or {}
    request_id = blood_request.get("id")
    return {
        "title": f"{blood_request.get('bloodType')} Blood Needed URGENTLY",
        "body": f"Emergency at {hospital.get('name')} - {blood_request.get('distance')}km away",
        "type": "blood_request_critical",
        "tag": f"emergency-{request_id}",
        "requireInteraction": True,
        "data": {
            "requestId": request_id,
            "bloodType": blood_request.get("bloodType"),
            "hospitalName": hospital.get("name"),
            "hospitalPhone": hospital.get("phone"),
            "distance": blood_request.get("distance"),
            "urgency": blood_request.get("urgency"),
            "patientInfo": blood_request.get("patient"),
            "requiresResponse": True,
            "notificationId": _notification_id("emergency", request_id, clock),
        },
    }


def build_urgent_payload(
    blood_request: dict[str, Any],
    clock: Clock = utc_now,
) -> dict[str, Any]:
    """Urgent, not critical, blood request."""
    hospital = blood_request.get("hospital") or {}
    request_id = blood_request.get("id")
    return {
        "title": f"{blood_request.get('bloodType')} Blood Needed",
        "body": f"Urgent request at {hospital.get('name')} - Can you help?",
        "type": "blood_request_urgent",
        "tag": f"urgent-{request_id}",
        "data": {
            "requestId": request_id,
            "bloodType": blood_request.get("bloodType"),
            "hospitalName": hospital.get("name"),
            "hospitalPhone": hospital.get("phone"),
            "distance": blood_request.get("distance"),
            "urgency": blood_request.get("urgency"),
            "requiresResponse": True,
            "notificationId": _notification_id("urgent", request_id, clock),
        },
    }


def build_reminder_payload(
    reminder: dict[str, Any],
    clock: Clock = utc_now,
) -> dict[str, Any]:
    donor_id = reminder.get("donorId")
    days = reminder.get("daysSinceLastDonation")
    return {
        "title": "Time to Donate Blood",
        "body": f"You haven't donated in {days} days. Ready to save lives?",
        "type": "donation_reminder",
        "tag": f"reminder-{donor_id}",
        "data": {
            "donorId": donor_id,
            "daysSinceLastDonation": days,
            "nearbyFacilities": reminder.get("nearbyFacilities"),
            "requiresResponse": False,
            "notificationId": _notification_id("reminder", donor_id, clock),
        },
    }


def build_confirmation_payload(
    response: dict[str, Any],
    clock: Clock = utc_now,
) -> dict[str, Any]:
    response_id = response.get("responseId")
    return {
        "title": "Response Confirmed",
        "body": f"Thank you for responding to the {response.get('bloodType')} blood request",
        "type": "response_confirmation",
        "tag": f"confirmation-{response_id}",
        "data": {
            "responseId": response_id,
            "requestId": response.get("requestId"),
            "action": response.get("action"),
            "requiresResponse": False,
            "notificationId": _notification_id("confirmation", response_id, clock),
        },
    }


BUILDERS = {
    NotificationKind.EMERGENCY: build_emergency_payload,
    NotificationKind.URGENT: build_urgent_payload,
    NotificationKind.REMINDER: build_reminder_payload,
    NotificationKind.CONFIRMATION: build_confirmation_payload,
}


def build_payload(
    kind: NotificationKind,
    source: dict[str, Any],
    clock: Optional[Clock] = None,
) -> dict[str, Any]:
    """Build the payload for a kind from its source object."""
    return BUILDERS[kind](source, clock or utc_now)
