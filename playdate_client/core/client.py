"""High-level Playdate client.

Ties the web session, the JSON API, device registration and key unwrapping
to one credential.  One instance handles one account and at most one
registration at a time; use separate instances for parallel registrations.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping

import requests

from playdate_client.config import Config, config
from playdate_client.core import key_unwrap
from playdate_client.core.device_registrar import DeviceRegistrar
from playdate_client.core.models import Credential, RegistrationSession
from playdate_client.integrations.playdate_api import PlaydateAPI
from playdate_client.integrations.web_session import SessionAuthenticator

logger = logging.getLogger("playdate_client.client")

__all__ = ["PlaydateClient"]


class PlaydateClient:
    """Playdate account and device client.

    Attributes:
        credential: Access token and web session flag of this client.
        api: JSON API endpoints (player, games, purchases, firmware).
        web: Cookie session against the web frontend.
        registrar: Device registration state machine.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        settings: Config | None = None,
        api_session: requests.Session | None = None,
        web_session: requests.Session | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            token: Existing API access token, if any.
            settings: Configuration. Defaults to the global config.
            api_session: Optional requests session for API calls.
            web_session: Optional requests session (cookie jar) for the web frontend.
        """
        self._settings = settings or config
        self.credential = Credential(access_token=token)
        self.api = PlaydateAPI(token, settings=self._settings, session=api_session)
        self.web = SessionAuthenticator(self.credential, settings=self._settings, session=web_session)
        self.registrar = DeviceRegistrar(self.credential, self.api, self.web, settings=self._settings)

    @classmethod
    def from_config(cls, settings: Config | None = None) -> PlaydateClient:
        """Build a client from configuration (``PLAYDATE_ACCESS_TOKEN`` and friends)."""
        settings = settings or config
        return cls(settings.ACCESS_TOKEN, settings=settings)

    @property
    def token(self) -> str | None:
        return self.credential.access_token

    @property
    def registration(self) -> RegistrationSession | None:
        """The current or most recent registration attempt."""
        return self.registrar.session

    # ------------------------------------------------------------------
    # Web session and device registration
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> bool:
        return self.web.login(username, password)

    def remove_device(self, serial: str) -> requests.Response:
        return self.registrar.remove_device(serial)

    def get_device_pin(self, serial: str) -> dict[str, Any]:
        return self.registrar.get_device_pin(serial)

    def add_device(self, pin: str) -> bool:
        return self.registrar.add_device(pin)

    def get_device_access_token(self, serial: str) -> dict[str, Any]:
        return self.registrar.get_device_access_token(serial)

    def register_device(
        self,
        serial: str,
        *,
        timeout: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> dict[str, Any]:
        """Run the full registration (remove, PIN, add, complete) for *serial*.

        See :meth:`DeviceRegistrar.register_device`.
        """
        return self.registrar.register_device(serial, timeout=timeout, cancel_event=cancel_event)

    # ------------------------------------------------------------------
    # Content keys
    # ------------------------------------------------------------------

    @staticmethod
    def get_game_decryption_key(unlock_key: bytes, game: Mapping[str, Any]) -> bytes:
        return key_unwrap.get_game_decryption_key(unlock_key, game)

    @staticmethod
    def get_firmware_decryption_key(unlock_key: bytes, update: Mapping[str, Any]) -> bytes:
        return key_unwrap.get_firmware_decryption_key(unlock_key, update)
