"""Domain errors raised by the reservation engine.

Each error carries the HTTP status it maps to; ``app.main`` renders them in
the ``{"success": false, "error": ...}`` envelope.
"""

from typing import Optional


class ReservationEngineError(Exception):
    """Base class for all engine errors"""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ReservationEngineError):
    """Missing or malformed input"""

    status_code = 400
    default_message = "Invalid request"


class InvalidState(ReservationEngineError):
    """Transition not allowed from the current status"""

    status_code = 400
    default_message = "Operation not allowed in the current state"


class Forbidden(ReservationEngineError):
    """Caller is not allowed to act on the resource"""

    status_code = 403
    default_message = "Access denied"


class NotFound(ReservationEngineError):
    """Unknown id"""

    status_code = 404
    default_message = "Not found"


class Conflict(ReservationEngineError):
    """Slot already taken"""

    status_code = 409
    default_message = "This table is already reserved for the selected time"


class Duplicate(Conflict):
    """Open waitlist entry already exists for the same phone"""

    default_message = "You are already in the waitlist for this restaurant"


class Internal(ReservationEngineError):
    """Persistence or collaborator failure; details stay in the server log"""
