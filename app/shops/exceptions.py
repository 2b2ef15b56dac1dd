"""
Event-specific exceptions.

Exception Hierarchy:
    EventError (base)
    ├── InvalidEventState - Operation not allowed in the event's status
    ├── EventFull - max_participants reached
    ├── AlreadyParticipant - User already joined
    ├── NotAParticipant - User is not part of the event
    └── InvalidExpenseSplit - Split exceeds or conflicts with its expense
"""

from __future__ import annotations

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)


class EventError(BaseApplicationError):
    default_error_code: str = "EVENT_ERROR"


class InvalidEventState(EventError, ConflictError):
    """
    Raised when an event transition or operation does not match its status.

    Example:
        raise InvalidEventState(
            "Cannot join a closed event",
            details={"event_id": str(event.id), "status": event.status},
        )
    """

    default_error_code: str = "INVALID_EVENT_STATE"


class EventFull(EventError, ConflictError):
    default_error_code: str = "EVENT_FULL"


class AlreadyParticipant(EventError, ConflictError):
    default_error_code: str = "ALREADY_PARTICIPANT"


class NotAParticipant(EventError, NotFoundError):
    default_error_code: str = "NOT_A_PARTICIPANT"


class InvalidExpenseSplit(EventError, ValidationError):
    default_error_code: str = "INVALID_EXPENSE_SPLIT"
