# playdate_client/core/models.py

"""Data models for the client: credentials, serial numbers and registration sessions.

A :class:`RegistrationSession` tracks one device registration attempt through
the protocol states and carries the idempotency key that correlates the PIN
request with the completion request.
"""

from __future__ import annotations

import logging
import re
import secrets
import string
import time
from dataclasses import dataclass, field
from enum import Enum

from playdate_client.core.errors import InvalidSerialError, RegistrationError

__all__ = [
    "Credential",
    "RegistrationSession",
    "RegistrationState",
    "SERIAL_LENGTH",
    "generate_idempotency_key",
    "validate_serial",
]

logger = logging.getLogger("playdate_client.models")

SERIAL_LENGTH = 12
_SERIAL_PATTERN = re.compile(r"PDU1-Y[0-9]{6}", re.ASCII)


@dataclass
class Credential:
    """Authentication state owned by one client instance.

    Attributes:
        access_token: API access token, replaced wholesale on registration.
        session_established: True once the web sign-in succeeded.
    """

    access_token: str | None = None
    session_established: bool = False

    def mark_session_established(self) -> None:
        self.session_established = True

    def replace_access_token(self, access_token: str) -> None:
        self.access_token = access_token


def validate_serial(serial: object) -> str:
    """Check that *serial* is ``PDU1-Y`` followed by exactly six digits.

    Args:
        serial: Candidate serial number, e.g. ``"PDU1-Y123456"``.

    Returns:
        The serial, unchanged.

    Raises:
        InvalidSerialError: If the serial has the wrong type, length or shape.
    """
    if not isinstance(serial, str) or len(serial) != SERIAL_LENGTH:
        raise InvalidSerialError(f"Invalid serial number: {serial!r}")
    if not _SERIAL_PATTERN.fullmatch(serial):
        raise InvalidSerialError(f"Invalid serial number: {serial!r}")
    return serial


def generate_idempotency_key(length: int = 16) -> str:
    """Return a random numeric string of *length* digits."""
    return "".join(secrets.choice(string.digits) for _ in range(length))


class RegistrationState(Enum):
    """States of the device registration protocol."""

    IDLE = "idle"
    DEREGISTERING = "deregistering"
    AWAITING_PIN = "awaiting_pin"
    PIN_OBTAINED = "pin_obtained"
    AWAITING_ACCESS_TOKEN = "awaiting_access_token"
    REGISTERED = "registered"
    FAILED = "failed"


_TRANSITIONS: dict[RegistrationState, frozenset[RegistrationState]] = {
    RegistrationState.IDLE: frozenset({RegistrationState.DEREGISTERING, RegistrationState.AWAITING_PIN}),
    RegistrationState.DEREGISTERING: frozenset({RegistrationState.AWAITING_PIN}),
    RegistrationState.AWAITING_PIN: frozenset({RegistrationState.PIN_OBTAINED}),
    RegistrationState.PIN_OBTAINED: frozenset({RegistrationState.AWAITING_ACCESS_TOKEN}),
    RegistrationState.AWAITING_ACCESS_TOKEN: frozenset({RegistrationState.REGISTERED}),
    # Completion may be retried after a failed add-device step
    RegistrationState.FAILED: frozenset({RegistrationState.AWAITING_ACCESS_TOKEN}),
    RegistrationState.REGISTERED: frozenset(),
}

_TERMINAL_STATES = frozenset({RegistrationState.REGISTERED, RegistrationState.FAILED})


@dataclass
class RegistrationSession:
    """One device registration attempt.

    Attributes:
        serial: Validated serial number of the device being registered.
        state: Current protocol state.
        idempotency_key: Correlator sent on the PIN and completion requests.
        pin: PIN returned by the PIN request.
        error: Description of the failure once the session is FAILED.
        started_at: Unix timestamp when the attempt began.
    """

    serial: str
    state: RegistrationState = RegistrationState.IDLE
    idempotency_key: str | None = None
    pin: str | None = None
    error: str | None = None
    started_at: float = field(default_factory=time.time)

    @property
    def is_terminal(self) -> bool:
        return self.state in _TERMINAL_STATES

    @property
    def can_complete(self) -> bool:
        """True if a completion request may be sent for this session."""
        return self.idempotency_key is not None and RegistrationState.AWAITING_ACCESS_TOKEN in _TRANSITIONS[self.state]

    def advance(self, new_state: RegistrationState) -> None:
        """Move to *new_state*.

        Raises:
            RegistrationError: If the protocol does not allow the transition.
        """
        if new_state is RegistrationState.FAILED:
            raise RegistrationError("Use fail() to abandon a registration attempt")
        if new_state not in _TRANSITIONS[self.state]:
            raise RegistrationError(f"Illegal registration transition {self.state.value} -> {new_state.value}")
        logger.debug("Registration %s: %s -> %s", self.serial, self.state.value, new_state.value)
        self.state = new_state

    def issue_idempotency_key(self, length: int = 16) -> str:
        self.idempotency_key = generate_idempotency_key(length)
        return self.idempotency_key

    def fail(self, reason: str) -> None:
        """Mark the attempt as FAILED. The idempotency key is kept for diagnostics and retries."""
        if self.state is RegistrationState.REGISTERED:
            raise RegistrationError("A completed registration cannot fail")
        logger.debug("Registration %s failed in state %s: %s", self.serial, self.state.value, reason)
        self.state = RegistrationState.FAILED
        self.error = reason

    def complete(self) -> None:
        """Mark the attempt as REGISTERED and consume the idempotency key."""
        self.advance(RegistrationState.REGISTERED)
        self.idempotency_key = None
        self.error = None
