import logging

from django.db import DatabaseError
from django.db.models import ProtectedError
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError

logger = logging.getLogger(__name__)


class ApiError(APIException):
    """Base for errors that render as ``{"message": ..., **extra}``."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed."

    def __init__(self, message=None, extra=None):
        super().__init__(message or self.default_detail)
        self.extra = extra or {}

    def as_body(self):
        return {"message": str(self.detail), **self.extra}


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."


class ConflictError(ApiError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict."


class PersistenceError(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "A database error occurred. No changes were saved."


def _first_message(detail):
    if isinstance(detail, dict):
        for key, value in detail.items():
            message = _first_message(value)
            if key == "non_field_errors":
                return message
            return f"{key}: {message}"
    if isinstance(detail, list) and detail:
        return _first_message(detail[0])
    return str(detail)


def api_exception_handler(exc, context):
    # rest_framework.views pulls in DEFAULT_AUTHENTICATION_CLASSES at import time
    from rest_framework.views import exception_handler

    if isinstance(exc, ProtectedError):
        exc = ConflictError("This record is referenced by existing orders and cannot be deleted.")
    elif isinstance(exc, DatabaseError):
        view = context.get("view")
        logger.exception("database failure in %s", view.__class__.__name__ if view else "unknown view")
        exc = PersistenceError()

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, ApiError):
        response.data = exc.as_body()
    elif isinstance(exc, ValidationError):
        response.data = {"message": _first_message(exc.detail), "errors": response.data}
    elif isinstance(response.data, dict) and "detail" in response.data:
        response.data = {"message": str(response.data["detail"])}
    return response
