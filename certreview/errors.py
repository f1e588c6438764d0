"""Service error taxonomy.

Every error carries an HTTP status and an optional context dict that is
merged into the JSON error body (e.g. ``cert_no``, ``calibration_id``,
``existing_status``). Rendering happens in one exception handler registered
in :mod:`certreview.main`.
"""

from typing import Any


class ServiceError(Exception):
    """Base class for errors surfaced to API callers."""

    http_status = 500

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"detail": self.message}
        body.update({k: v for k, v in self.context.items() if v is not None})
        return body


class ValidationInputError(ServiceError):
    http_status = 400


class PhoenixRejectedError(ServiceError):
    """Phoenix refused the request with a 4xx that was not auth or not-found."""

    http_status = 400


class AuthenticationError(ServiceError):
    http_status = 401


class NotFoundError(ServiceError):
    http_status = 404


class ConflictError(ServiceError):
    http_status = 409


class InternalError(ServiceError):
    http_status = 500


class ExternalServiceError(ServiceError):
    http_status = 502
