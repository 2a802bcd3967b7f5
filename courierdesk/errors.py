"""
errors.py — Domain error taxonomy

Every business-rule failure raised by the lifecycle engine and the
resolution workflow is one of these. Each carries the HTTP status and a
machine code so main.py can render a structured ErrorResponse. Store
faults (SQLAlchemyError) are never wrapped in these.

Called by: services/*, permissions.py, main.py (exception handlers)
"""


class CourierDeskError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class NotFoundError(CourierDeskError):
    status_code = 404
    code = "not_found"


class ForbiddenError(CourierDeskError):
    status_code = 403
    code = "forbidden"


class ConflictError(CourierDeskError):
    """Concurrent change lost, or the entity was already mutated incompatibly."""

    status_code = 409
    code = "conflict"


class InvalidTransitionError(CourierDeskError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, current: str, requested: str, message: str = ""):
        super().__init__(message or f"Cannot transition from {current} to {requested}")
        self.current = current
        self.requested = requested


class ValidationError(CourierDeskError):
    status_code = 422
    code = "validation_error"
