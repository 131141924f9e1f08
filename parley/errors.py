"""Error taxonomy shared by the session, conversation and chat layers."""

from typing import Any


class ParleyError(Exception):
    """Base class for every error raised by Parley itself."""


class AuthError(ParleyError):
    """Credentials were rejected, or registration failed validation.

    `field_errors` maps a form field to its messages when the server scoped
    the failure to specific fields.
    """

    def __init__(self, message: str, field_errors: dict[str, list[str]] | None = None):
        super().__init__(message)
        self.message = message
        self.field_errors = field_errors


class SessionExpired(ParleyError):
    """An authenticated call was refused; stored tokens are no longer valid."""


class NetworkError(ParleyError):
    """A request could not be completed."""


class ResponseError(NetworkError):
    """The server answered with an error status."""

    def __init__(self, status_code: int, payload: Any = None):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.payload = payload


class ValidationError(ParleyError):
    """Local input check failed before any request was made."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field
