"""Exception hierarchy for playdate-client.

Every failure the client reports derives from :class:`PlaydateError`, so
callers can catch the whole family at once or single out one case.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "APIError",
    "AuthenticationError",
    "DeviceAddError",
    "FormatError",
    "IntegrityError",
    "InvalidSerialError",
    "KeyUnwrapError",
    "NoPendingRegistrationError",
    "NotAuthenticatedError",
    "PageNotFoundError",
    "PlaydateError",
    "PlaydateHTTPError",
    "RegistrationCancelledError",
    "RegistrationError",
    "RegistrationInProgressError",
]


class PlaydateError(Exception):
    """Base class for all client errors."""


class InvalidSerialError(PlaydateError, ValueError):
    """Serial number does not match ``PDU1-Y`` followed by six digits."""


class NotAuthenticatedError(PlaydateError):
    """Operation needs a web session or an access token that is missing."""


class AuthenticationError(PlaydateError):
    """The sign-in form was rejected."""


class PageNotFoundError(PlaydateError):
    """The page has no anti-forgery token, so the resource behind it is absent."""


class PlaydateHTTPError(PlaydateError):
    """Unexpected HTTP status from the web frontend or the API.

    Attributes:
        status_code: HTTP status code of the response.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class APIError(PlaydateHTTPError):
    """The JSON API answered with an error.

    Attributes:
        payload: Decoded JSON body of the error response, if any.
    """

    def __init__(self, message: str, status_code: int | None = None, payload: Any = None) -> None:
        super().__init__(message, status_code)
        self.payload = payload


class RegistrationError(PlaydateError):
    """A step of the device registration protocol failed."""


class DeviceAddError(RegistrationError):
    """The add-device form did not accept the PIN."""


class NoPendingRegistrationError(RegistrationError):
    """Completion was requested without a prior PIN request."""


class RegistrationCancelledError(RegistrationError):
    """The caller's deadline expired or the attempt was cancelled."""


class RegistrationInProgressError(RegistrationError):
    """Another registration is already running on this client."""


class KeyUnwrapError(PlaydateError):
    """Base class for key envelope failures."""


class IntegrityError(KeyUnwrapError):
    """The envelope's authentication tag did not verify."""


class FormatError(KeyUnwrapError):
    """The envelope or unlock key is malformed."""
