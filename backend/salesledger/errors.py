# Overview: Error taxonomy for the API and the Flask handlers that render it.

"""
Application errors.

Every error the services raise on purpose is an ApiError subclass carrying
the HTTP status it maps to. Routes let them propagate; the handlers
registered here turn them into a uniform JSON body:

    {"message": "...", "errors": {"field": ["..."]}}

Anything else that escapes a view is logged with its traceback and rendered
as a generic 500 so that SQL and stack traces never reach the client.
"""

from __future__ import annotations

from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """Base class for errors that map to a JSON error response."""
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, errors: dict | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.errors = errors or {}

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(ApiError):
    """422: malformed or missing input, detected before any write."""
    status_code = 422
    default_message = "Validation failed"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls("Validation failed", errors={field: [message]})


class AuthenticationError(ApiError):
    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(ApiError):
    """403: the actor lacks the capability."""
    status_code = 403
    default_message = "Permission denied"


class NotFoundError(ApiError):
    """404: resource absent, or owned by another tenant (deliberately merged)."""
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ApiError):
    """409: duplicate unique value that could not be resolved by retrying."""
    status_code = 409
    default_message = "Conflict"


class PersistenceError(ApiError):
    """500: storage failure mid-operation; the atomic unit was rolled back."""
    status_code = 500
    default_message = "Internal server error"


def register_error_handlers(app) -> None:
    @app.errorhandler(ApiError)
    def handle_api_error(err: ApiError):
        if err.status_code >= 500:
            current_app.logger.error("Request failed: %s", err, exc_info=err.__cause__ or err)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return jsonify({"message": err.description or err.name}), err.code

    @app.errorhandler(Exception)
    def handle_unexpected(err: Exception):
        current_app.logger.exception("Unhandled error")
        return jsonify({"message": "Internal server error"}), 500
