# exception types raised by the api package, caught by screens and shown as notifications
from typing import Optional


class StorefrontError(Exception):
    """Base class for every failure the storefront reports to the user."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ApiError(StorefrontError):
    """
    The API answered with a non-success status, or with a body we could not decode.
    message carries the server-supplied `error` field when there is one.
    """

    def __init__(self, message: str = "", status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class TransportError(ApiError):
    """No usable response at all: connection refused, DNS failure, dropped socket."""


class AuthRequiredError(StorefrontError):
    """Not logged in, or login rejected. Raised before any request is sent."""


class AdminRequiredError(StorefrontError):
    """Logged-in user lacks the admin flag. Raised before any request is sent."""


class ValidationError(StorefrontError):
    """Form input rejected client-side."""


class OutOfStockError(ValidationError):
    pass
