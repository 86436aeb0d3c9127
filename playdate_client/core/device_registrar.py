# playdate_client/core/device_registrar.py

"""
Device registration against the Playdate service.

Registering a device exchanges its serial number for a long-lived API access
token in four steps:

1. remove any previous registration of the serial (best effort, web form)
2. request a registration PIN from the API, tagged with an idempotency key
3. submit the PIN through the "add device" web form
4. fetch the access token from the API, tagged with the same idempotency key

The server only releases the token once it has seen the PIN accepted in
step 3, and correlates steps 2 and 4 through the idempotency key.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

import requests

from playdate_client.config import Config, config
from playdate_client.core.errors import (
    DeviceAddError,
    NoPendingRegistrationError,
    NotAuthenticatedError,
    PlaydateError,
    RegistrationCancelledError,
    RegistrationError,
    RegistrationInProgressError,
)
from playdate_client.core.models import (
    Credential,
    RegistrationSession,
    RegistrationState,
    validate_serial,
)
from playdate_client.integrations.playdate_api import PlaydateAPI
from playdate_client.integrations.web_session import SessionAuthenticator

logger = logging.getLogger("playdate_client.device_registrar")

__all__ = ["DeviceRegistrar", "IDEMPOTENCY_HEADER"]

IDEMPOTENCY_HEADER = "idempotency-key"


class _Deadline:
    """Overall time budget and cancel signal of one registration attempt."""

    def __init__(self, timeout: float | None, cancel_event: threading.Event | None, request_timeout: float) -> None:
        self._expires_at = time.monotonic() + timeout if timeout is not None else None
        self._cancel_event = cancel_event
        self._request_timeout = request_timeout

    def check(self) -> float:
        """Raise if the attempt must stop, otherwise return the next request's timeout."""
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise RegistrationCancelledError("Registration cancelled")
        if self._expires_at is None:
            return self._request_timeout
        remaining = self._expires_at - time.monotonic()
        if remaining <= 0:
            raise RegistrationCancelledError("Registration deadline expired")
        return min(self._request_timeout, remaining)


class DeviceRegistrar:
    """Runs the device registration protocol for one client.

    The registrar owns a single :class:`RegistrationSession` slot, so at most
    one idempotency key is live at a time.  Starting a new attempt replaces
    the previous session.

    Attributes:
        credential: The client's credential; its access token is replaced
            when a registration completes.
        api: JSON API collaborator; its headers follow the new token.
        web: Web session used for the add/remove device forms.
    """

    def __init__(
        self,
        credential: Credential,
        api: PlaydateAPI,
        web: SessionAuthenticator,
        *,
        settings: Config | None = None,
    ) -> None:
        """Initialize the registrar.

        Args:
            credential: Credential shared with the web session and API.
            api: JSON API client.
            web: Authenticated web session.
            settings: Configuration (timeouts, key length). Defaults to the global config.
        """
        self.credential = credential
        self.api = api
        self.web = web
        self._settings = settings or config
        self._session: RegistrationSession | None = None
        self._lock = threading.Lock()

    @property
    def session(self) -> RegistrationSession | None:
        """The current or most recent registration attempt."""
        return self._session

    @property
    def idempotency_key(self) -> str | None:
        return self._session.idempotency_key if self._session else None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def register_device(
        self,
        serial: str,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> dict[str, Any]:
        """Register the device *serial* and adopt its access token.

        Args:
            serial: Device serial number, ``PDU1-Y`` followed by six digits.
            timeout: Overall time budget in seconds, checked before every
                network call.
            cancel_event: Set it from another thread to abort at the next
                network call.

        Returns:
            The completion payload, including ``access_token``.

        Raises:
            NotAuthenticatedError: If no web session is established.
            InvalidSerialError: If the serial is malformed.
            RegistrationInProgressError: If another registration is running.
            RegistrationError: If a protocol step fails (see subclasses).
        """
        self._require_session()
        validate_serial(serial)

        if not self._lock.acquire(blocking=False):
            raise RegistrationInProgressError("A registration is already running on this client")
        try:
            deadline = _Deadline(timeout, cancel_event, self._settings.REQUEST_TIMEOUT)
            session = self._start_session(serial)
            try:
                return self._run(session, deadline)
            except RegistrationCancelledError as exc:
                session.fail(str(exc))
                logger.warning("Registration of %s aborted: %s", serial, exc)
                raise
        finally:
            self._lock.release()

    def remove_device(
        self,
        serial: str,
        *,
        timeout: float | None = None,
        checkpoint: Callable[[], float | None] | None = None,
    ) -> requests.Response:
        """Remove *serial* from the signed-in account via the web form.

        *checkpoint* runs before each of the form's two requests; see
        :meth:`SessionAuthenticator.submit_form`.

        Raises:
            NotAuthenticatedError: If no web session is established.
            InvalidSerialError: If the serial is malformed.
            PageNotFoundError: If the device is not registered to the account.
        """
        self._require_session()
        validate_serial(serial)
        url = self.web.url_for(f"/devices/{serial}/remove/")
        return self.web.submit_form(url, {}, timeout=timeout, checkpoint=checkpoint)

    def get_device_pin(self, serial: str, *, timeout: float | None = None) -> dict[str, Any]:
        """Start a registration attempt for *serial* and request its PIN.

        Returns:
            The PIN payload, including ``pin``.
        """
        validate_serial(serial)
        return self._request_pin(self._start_session(serial), timeout)

    def add_device(
        self,
        pin: str,
        *,
        timeout: float | None = None,
        checkpoint: Callable[[], float | None] | None = None,
    ) -> bool:
        """Submit *pin* through the add-device web form.

        Raises:
            NotAuthenticatedError: If no web session is established.
            DeviceAddError: If the form submission is rejected.
        """
        self._require_session()
        url = self.web.url_for("/pin/")
        response = self.web.submit_form(url, {"pin": pin}, timeout=timeout, checkpoint=checkpoint)

        if not response.ok:
            if self._session is not None and not self._session.is_terminal:
                self._session.fail(f"add device returned status {response.status_code}")
            raise DeviceAddError("Could not add device.")
        return True

    def get_device_access_token(self, serial: str, *, timeout: float | None = None) -> dict[str, Any]:
        """Fetch the access token for the pending registration of *serial*.

        On success the client's credential and API headers switch to the new
        token and the idempotency key is consumed.

        Raises:
            NoPendingRegistrationError: If no PIN was requested for *serial*.
            RegistrationError: If the completion call fails.
        """
        validate_serial(serial)
        session = self._session
        if session is None or session.serial != serial or not session.can_complete:
            raise NoPendingRegistrationError("You must first add a device before this can be called.")
        return self._complete(session, timeout)

    # ------------------------------------------------------------------
    # Protocol steps
    # ------------------------------------------------------------------

    def _run(self, session: RegistrationSession, deadline: _Deadline) -> dict[str, Any]:
        session.advance(RegistrationState.DEREGISTERING)
        self._deregister(session.serial, deadline.check)

        pin_data = self._request_pin(session, deadline.check())

        try:
            self.add_device(pin_data["pin"], checkpoint=deadline.check)
        except (DeviceAddError, RegistrationCancelledError):
            raise
        except (PlaydateError, requests.RequestException) as exc:
            session.fail(f"add device failed: {exc}")
            raise DeviceAddError(f"Could not add device {session.serial}: {exc}") from exc

        return self._complete(session, deadline.check())

    def _deregister(self, serial: str, checkpoint: Callable[[], float]) -> None:
        """Remove a previous registration, tolerating every protocol or transport failure.

        Cancellation still propagates.

        A device that was never registered has no removal page, which is a
        normal starting point rather than an error.
        """
        try:
            self.remove_device(serial, checkpoint=checkpoint)
            logger.debug("Removed previous registration of %s", serial)
        except RegistrationCancelledError:
            raise
        except PlaydateError as exc:
            logger.debug("No previous registration of %s removed: %s", serial, exc)
        except requests.RequestException as exc:
            logger.warning("Deregistration of %s failed, continuing: %s", serial, exc)

    def _request_pin(self, session: RegistrationSession, timeout: float | None) -> dict[str, Any]:
        session.advance(RegistrationState.AWAITING_PIN)
        key = session.issue_idempotency_key(self._settings.IDEMPOTENCY_KEY_LENGTH)

        try:
            data = self.api.request(
                f"/device/register/{session.serial}",
                headers={IDEMPOTENCY_HEADER: key},
                require_token=False,
                timeout=timeout,
            )
        except (PlaydateError, requests.RequestException) as exc:
            session.fail(f"PIN request failed: {exc}")
            raise RegistrationError(f"PIN request for {session.serial} failed: {exc}") from exc

        pin = data.get("pin") if isinstance(data, dict) else None
        if not pin:
            session.fail("PIN response has no pin")
            raise RegistrationError(f"PIN response for {session.serial} has no pin")

        session.pin = str(pin)
        session.advance(RegistrationState.PIN_OBTAINED)
        logger.info("Obtained registration PIN for %s", session.serial)
        return data

    def _complete(self, session: RegistrationSession, timeout: float | None) -> dict[str, Any]:
        session.advance(RegistrationState.AWAITING_ACCESS_TOKEN)

        try:
            data = self.api.request(
                f"/device/register/{session.serial}/complete/",
                headers={IDEMPOTENCY_HEADER: session.idempotency_key},
                require_token=False,
                timeout=timeout,
            )
        except (PlaydateError, requests.RequestException) as exc:
            session.fail(f"completion request failed: {exc}")
            raise RegistrationError(f"Completing registration of {session.serial} failed: {exc}") from exc

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            session.fail("completion response has no access_token")
            raise RegistrationError(f"Completion response for {session.serial} has no access_token")

        self.credential.replace_access_token(access_token)
        self.api.set_access_token(access_token)
        session.complete()
        logger.info("Registered device %s", session.serial)

        return data

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_session(self) -> None:
        if not self.credential.session_established:
            raise NotAuthenticatedError("You must be logged in to manage devices")

    def _start_session(self, serial: str) -> RegistrationSession:
        previous = self._session
        if previous is not None and previous.idempotency_key and not previous.is_terminal:
            logger.warning("Abandoning pending registration of %s", previous.serial)
        self._session = RegistrationSession(serial=serial)
        return self._session
