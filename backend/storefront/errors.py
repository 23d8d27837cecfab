# Overview: Error taxonomy shared by services and routes, plus the JSON error handlers.

"""
Storefront error taxonomy.

Services raise these; routes never build error responses by hand. The
handlers registered in register_error_handlers() turn them into
{"error": "..."} JSON bodies with the matching status code.

SECURITY: Unexpected exceptions are logged with a traceback server-side and
surface to the caller only as a generic 500. No stack trace ever leaves the
process.
"""

from __future__ import annotations

from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException


class StorefrontError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        body.update(self.details)
        return body


class BadRequestError(StorefrontError):
    """Malformed or missing input (no store identifier, missing bank details...)."""
    status_code = 400


class UnauthorizedError(StorefrontError):
    """Missing, invalid or expired credential, wrong credential class, blocked account."""
    status_code = 401


class ForbiddenError(StorefrontError):
    """Valid credential without the required permission."""
    status_code = 403


class NotFoundError(StorefrontError):
    """Entity absent under the resolved store scope."""
    status_code = 404


class ConflictError(StorefrontError):
    """Duplicate unique key: slug, admin email, invoice per order..."""
    status_code = 409


class InvalidOperationError(StorefrontError):
    """Order state machine rule violation (refund after cancel, cancel after delivery)."""
    status_code = 409


class PaymentProviderError(StorefrontError):
    """The payment provider refused or failed an outbound call."""
    status_code = 502


def register_error_handlers(app) -> None:
    @app.errorhandler(StorefrontError)
    def handle_storefront_error(err: StorefrontError):
        if err.status_code >= 500:
            current_app.logger.error("Storefront error: %s", err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return jsonify({"error": err.description or err.name}), err.code

    @app.errorhandler(Exception)
    def handle_unexpected(err: Exception):
        current_app.logger.exception("Unhandled error")
        return jsonify({"error": "Internal server error"}), 500
