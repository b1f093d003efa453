"""
Reservation errors and the FastAPI handlers that render them.

Every expected business outcome (seats gone, deadline lapsed, duplicate...) is
a ``ReservationError`` subclass with a stable ``kind`` the client can switch
on. Anything else reaching the generic handler is a genuine fault.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ReservationError(Exception):
    """Base class for expected, user-recoverable outcomes."""

    kind: str = "ReservationError"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class InsufficientSeats(ReservationError):
    kind = "InsufficientSeats"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, trip_id: int, requested: int, available: int):
        super().__init__(
            f"Only {available} seat(s) left on trip {trip_id}",
            details={"trip_id": trip_id, "requested": requested, "available": available},
        )


class TripUnavailable(ReservationError):
    kind = "TripUnavailable"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, trip_id: int, trip_status: str):
        super().__init__(
            f"Trip {trip_id} is {trip_status} and no longer accepts bookings",
            details={"trip_id": trip_id, "status": trip_status},
        )


class DuplicateBooking(ReservationError):
    kind = "DuplicateBooking"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, trip_id: int, rider_id: int):
        super().__init__(
            "You already have an active booking for this trip",
            details={"trip_id": trip_id, "rider_id": rider_id},
        )


class AccessDenied(ReservationError):
    kind = "AccessDenied"
    status_code = status.HTTP_403_FORBIDDEN


class BookingExpired(ReservationError):
    kind = "BookingExpired"
    status_code = status.HTTP_410_GONE

    def __init__(self, booking_id: int):
        super().__init__(
            f"Payment window for booking {booking_id} has lapsed",
            details={"booking_id": booking_id},
        )


class NotFound(ReservationError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} {resource_id} not found"
        super().__init__(message, details={"resource": resource, "id": resource_id})


class InvalidState(ReservationError):
    kind = "InvalidState"
    status_code = status.HTTP_409_CONFLICT


class LedgerInvariantError(RuntimeError):
    """A seat adjustment would break the capacity invariant. Always a bug."""


# Global exception handlers

async def reservation_error_handler(request: Request, exc: ReservationError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "message": exc.message, "details": exc.details},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error_map = {
        401: "Unauthorized",
        403: "AccessDenied",
        404: "NotFound",
        405: "MethodNotAllowed",
    }
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": error_map.get(exc.status_code, "HTTPError"), "message": exc.detail, "details": {}},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "ValidationError", "message": "Validation error", "details": {"errors": exc.errors()}},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception: %s",
        type(exc).__name__,
        exc_info=exc,
        extra={"path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "InternalError", "message": "An internal server error occurred", "details": {}},
    )
