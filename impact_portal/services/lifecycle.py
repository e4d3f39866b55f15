"""Assessment request lifecycle — statuses, transitions and UI state."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from impact_portal.errors import InvalidTransitionError


class RequestStatus(str, Enum):
    QUEUED = "Queued"
    RUNNING = "Running"
    COMPLETED = "Completed"
    FAILED = "Failed"


CANCEL_MESSAGE = "Canceled by user"

# Directed edges. Completed and Failed are terminal.
TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.QUEUED: frozenset({RequestStatus.RUNNING, RequestStatus.FAILED}),
    RequestStatus.RUNNING: frozenset({RequestStatus.COMPLETED, RequestStatus.FAILED}),
    RequestStatus.COMPLETED: frozenset(),
    RequestStatus.FAILED: frozenset(),
}

CANCELLABLE = frozenset({RequestStatus.QUEUED, RequestStatus.RUNNING})

# Badge colours mirror the portal's status palette
STATUS_COLOURS = {
    RequestStatus.QUEUED: "neutral",
    RequestStatus.RUNNING: "blue",
    RequestStatus.COMPLETED: "green",
    RequestStatus.FAILED: "red",
}


def parse_status(value: str | RequestStatus) -> RequestStatus:
    """Coerce a raw status value, rejecting anything outside the enumeration."""
    try:
        return RequestStatus(value)
    except ValueError:
        raise InvalidTransitionError(f"Unknown request status '{value}'") from None


def is_terminal(status: str | RequestStatus) -> bool:
    return not TRANSITIONS[parse_status(status)]


def can_transition(current: str | RequestStatus, new: str | RequestStatus) -> bool:
    """Return True if ``current -> new`` is an edge of the lifecycle.

    Writing the same status again is not a transition and is allowed.
    """
    current_status = parse_status(current)
    new_status = parse_status(new)
    if current_status == new_status:
        return True
    return new_status in TRANSITIONS[current_status]


def ensure_transition(current: str | RequestStatus, new: str | RequestStatus) -> RequestStatus:
    """Validate a status change and return the new status."""
    if not can_transition(current, new):
        raise InvalidTransitionError(
            f"Cannot move a request from {parse_status(current).value} to {parse_status(new).value}"
        )
    return parse_status(new)


def can_cancel(status: str | RequestStatus) -> bool:
    """Cancellation is offered only while the request is still in flight."""
    return parse_status(status) in CANCELLABLE


def cancel_changes(status: str | RequestStatus) -> dict[str, Any]:
    """Build the row changes for a user cancellation.

    Raises InvalidTransitionError when the request already reached a
    terminal status.
    """
    if not can_cancel(status):
        raise InvalidTransitionError(
            f"A {parse_status(status).value} request can no longer be canceled"
        )
    return {
        "status": RequestStatus.FAILED.value,
        "error_message": CANCEL_MESSAGE,
        "completed_at": datetime.now(timezone.utc),
    }


def timeline_steps(status: str | RequestStatus) -> list[dict[str, Any]]:
    """Progress steps shown on the request detail page."""
    current = parse_status(status)
    finished = current in (RequestStatus.COMPLETED, RequestStatus.FAILED)
    return [
        {"name": "Queued", "completed": True, "current": current == RequestStatus.QUEUED},
        {"name": "Running", "completed": finished, "current": current == RequestStatus.RUNNING},
        {"name": "Completed", "completed": current == RequestStatus.COMPLETED, "current": False},
    ]


def status_presentation(status: str | RequestStatus) -> dict[str, Any]:
    """Map a request status onto the UI state the views render."""
    current = parse_status(status)
    return {
        "status": current.value,
        "label": current.value,
        "colour": STATUS_COLOURS[current],
        "steps": timeline_steps(current),
        "can_cancel": can_cancel(current),
        "results_available": current == RequestStatus.COMPLETED,
        "in_progress": current == RequestStatus.RUNNING,
        "error_state": current == RequestStatus.FAILED,
    }
