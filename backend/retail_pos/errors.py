# Overview: Typed failures surfaced verbatim to callers.

from __future__ import annotations


class PosError(Exception):
    """Base for every failure the services raise on purpose."""

    status_code = 400
    code = "POS_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class InvalidInput(PosError):
    """Malformed or empty request."""
    status_code = 400
    code = "INVALID_INPUT"


class NotFound(PosError):
    """Referenced product, variant or transaction is absent."""
    status_code = 404
    code = "NOT_FOUND"


class PaymentMismatch(PosError):
    """Payments do not sum to the final amount."""
    status_code = 400
    code = "PAYMENT_MISMATCH"


class InsufficientStock(PosError):
    """Commit or adjustment would drive inventory negative."""
    status_code = 409
    code = "INSUFFICIENT_STOCK"


class StorageFailure(PosError):
    """Underlying store unavailable, locked or timed out."""
    status_code = 503
    code = "STORAGE_FAILURE"
