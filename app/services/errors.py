"""
Tweetheart — Domain errors raised by the service layer.

Each error carries the HTTP status it maps to; ``app.main`` installs a
single exception handler that renders them as ``{"detail": ...}``.
"""

from __future__ import annotations


class ServiceError(Exception):
    status_code: int = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(ServiceError):
    status_code = 400


class AuthenticationError(ServiceError):
    status_code = 401


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409


class PayloadTooLargeError(ServiceError):
    status_code = 413
