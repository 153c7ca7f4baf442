"""
Typed errors raised by the service layer.

Routers never build error responses for business rules themselves; the
handler registered in main.py maps each FleetError to its HTTP status and a
``{"detail": ..., "error": ...}`` body.
"""
from fastapi import status


class FleetError(Exception):
    """Base class for every rejected fleet operation"""
    status_code = status.HTTP_400_BAD_REQUEST
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(FleetError):
    status_code = status.HTTP_404_NOT_FOUND
    kind = "not_found"


class InvalidStateError(FleetError):
    """Lifecycle transition attempted from the wrong state"""
    status_code = status.HTTP_409_CONFLICT
    kind = "invalid_state"


class ConflictError(FleetError):
    """Resource unavailable or already booked"""
    status_code = status.HTTP_409_CONFLICT
    kind = "conflict"


class DuplicateKeyError(ConflictError):
    kind = "duplicate_key"


class InvalidInputError(FleetError):
    kind = "invalid_input"


class InvalidRoleError(FleetError):
    kind = "invalid_role"
