"""Starknet Lightning Mixer - Custom exceptions.

Every synchronous API failure is a ``MixerError`` subclass. The application
turns them into ``{success: false, error, message, details, timestamp}``
envelopes using ``status_code`` and ``error`` below.
"""

from typing import Any


class MixerError(Exception):
    """Base exception for all mixer errors."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(MixerError):
    """Client input missing or invalid."""

    status_code = 400
    error = "Bad Request"


class NotFoundError(MixerError):
    """Unknown transaction (or other record)."""

    status_code = 404
    error = "Not Found"

    def __init__(self, message: str, transaction_id: str | None = None) -> None:
        details = {"transactionId": transaction_id} if transaction_id else None
        super().__init__(message, details)


class ConflictError(MixerError):
    """A lifecycle guard was violated by the current transaction status."""

    status_code = 409
    error = "Conflict"

    def __init__(self, message: str, current_status: str) -> None:
        self.current_status = current_status
        super().__init__(message, {"currentStatus": current_status})


class UpstreamError(MixerError):
    """An external integration failed while serving a synchronous request."""

    status_code = 502
    error = "Bad Gateway"


class IntegrationError(MixerError):
    """Raised by a payment/exchange integration call.

    Inside the mixing pipeline this is recorded on the transaction; during
    ``initiate`` it is wrapped into ``UpstreamError``.
    """

    pass
