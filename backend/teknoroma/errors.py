# Overview: Domain error taxonomy shared by services and translated to HTTP by routes.

from __future__ import annotations

from flask import jsonify


class DomainError(Exception):
    """Base class for business-rule and infrastructure failures."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(DomainError):
    """400-level input problem."""

    status_code = 400


class NotFoundError(DomainError):
    """Referenced entity is missing or soft-deleted."""

    status_code = 404


class InsufficientStockError(DomainError):
    """Requested quantity exceeds units in stock."""

    status_code = 400


class DuplicateError(DomainError):
    """409-level unique-constraint conflict (e.g., duplicate barcode)."""

    status_code = 409


class InvalidStateTransitionError(DomainError):
    """Illegal status change, e.g. cancelling a completed sale."""

    status_code = 409


class InfrastructureError(DomainError):
    """Database or network failure. Surfaced as a generic 500."""

    status_code = 500

    def to_dict(self) -> dict:
        return {"error": "Internal server error"}


def error_response(exc: DomainError):
    """Translate a domain error into a (json, status) Flask response."""
    return jsonify(exc.to_dict()), exc.status_code
