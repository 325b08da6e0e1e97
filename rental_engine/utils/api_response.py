"""
Standardized API response helpers.

    Success:  {"success": true, "data": {...}, "message": "..."}
    Error:    {"success": false, "error": "...", "code": "BookingConflict"}
"""

from typing import Any

from flask import jsonify

from rental_engine.exceptions import (
    BookingConflict,
    EngineError,
    IdAllocationExhausted,
    InvalidInterval,
    InvalidTransition,
    RecordNotFound,
    StoreError,
)
from rental_engine.models.operations import MalformedOperation

# HTTP status per error class; the first matching base wins
ERROR_STATUS = (
    (InvalidInterval, 400),
    (MalformedOperation, 400),
    (RecordNotFound, 404),
    (BookingConflict, 409),
    (InvalidTransition, 409),
    (IdAllocationExhausted, 503),
    (StoreError, 503),
)


def api_success(data: Any = None, message: str | None = None, status: int = 200, **extra_fields: Any) -> tuple:
    """Build a standardized success JSON response."""
    response = {"success": True}
    if data is not None:
        response["data"] = data
    if message:
        response["message"] = message
    if extra_fields:
        response.update(extra_fields)
    return jsonify(response), status


def api_error(error: str, status: int = 400, **extra_fields: Any) -> tuple:
    """Build a standardized error JSON response."""
    response = {"success": False, "error": error}
    if extra_fields:
        response.update(extra_fields)
    return jsonify(response), status


def status_for(exc: Exception) -> int:
    for cls, status in ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    return 500


def engine_error(exc: EngineError, **extra_fields: Any) -> tuple:
    """Render an engine error (raised or refused) with its mapped status."""
    if isinstance(exc, BookingConflict):
        extra_fields.setdefault("conflicts", exc.conflicting_ids)
    return api_error(exc.message, status=status_for(exc), code=exc.code, **extra_fields)
