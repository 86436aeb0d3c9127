"""Playdate JSON API client.

Wraps ``https://<host>/api/v2`` behind one authenticated request helper and
exposes the player, game catalog, purchase and firmware endpoints on top of it.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import requests

from playdate_client.config import Config, config
from playdate_client.core.errors import APIError, NotAuthenticatedError

logger = logging.getLogger("playdate_client.playdate_api")

__all__ = ["PlaydateAPI"]


class PlaydateAPI:
    """Authenticated client for the Playdate JSON API.

    Every call sends ``Authorization: Token <token>`` and
    ``Content-Type: application/json``.

    Attributes:
        base_url: API root, e.g. ``https://play.date/api/v2``.
        token: Current access token, or None before registration.
        headers: Header set sent with every request.
    """

    def __init__(
        self,
        token: str | None = None,
        *,
        settings: Config | None = None,
        session: requests.Session | None = None,
    ) -> None:
        """Initializes the API client.

        Args:
            token: Access token. May be None until a device is registered.
            settings: Configuration to read the base URL and timeout from.
                Defaults to the global config.
            session: Optional pre-built requests session.
        """
        self._settings = settings or config
        self.base_url: str = self._settings.API_BASE_URL
        self._session = session or requests.Session()
        self.token: str | None = None
        self.headers: dict[str, str] = {}
        self.set_access_token(token)

    def set_access_token(self, token: str | None) -> None:
        """Replace the access token and rebuild the header set."""
        self.token = token
        self.headers = {"Content-Type": "application/json"}
        if token:
            self.headers["Authorization"] = f"Token {token}"

    def request(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        require_token: bool = True,
        timeout: float | None = None,
    ) -> Any:
        """Sends a request to *endpoint* and returns the decoded JSON.

        Args:
            endpoint: Path below the API root, starting with ``/``.
            method: HTTP method.
            body: JSON-serializable request body.
            headers: Extra headers merged over the authenticated set.
            params: Query string parameters.
            require_token: Fail early if no access token is set.
            timeout: Request timeout in seconds. Defaults to the configured one.

        Returns:
            The decoded JSON response.

        Raises:
            NotAuthenticatedError: If a token is required but missing.
            APIError: On a non-2xx status or a non-JSON response.
            requests.RequestException: On transport failure.
        """
        if require_token and not self.token:
            raise NotAuthenticatedError("Missing token")

        request_headers = dict(self.headers)
        if headers:
            request_headers.update(headers)

        url = f"{self.base_url}{endpoint}"
        logger.debug("%s %s", method, url)
        response = self._session.request(
            method,
            url,
            headers=request_headers,
            json=body,
            params=params,
            timeout=timeout if timeout is not None else self._settings.REQUEST_TIMEOUT,
        )

        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.ok:
            message = "Request failed"
            if isinstance(data, dict) and data.get("message"):
                message = str(data["message"])
            logger.warning("API %s %s failed with status %d: %s", method, endpoint, response.status_code, message)
            raise APIError(message, status_code=response.status_code, payload=data)

        if data is None:
            raise APIError("Response is not valid JSON", status_code=response.status_code)

        return data

    # ------------------------------------------------------------------
    # Player
    # ------------------------------------------------------------------

    def auth_echo(self, json_body: Any) -> Any:
        """Echoes back the sent JSON body."""
        return self.request("/auth_echo/", "POST", json_body)

    def get_player(self) -> Any:
        """Retrieves the profile of the user that owns the current token."""
        return self.request("/player/")

    def get_player_by_id(self, player_id: str) -> Any:
        return self.request(f"/player/{player_id}/")

    def upload_avatar(self, avatar_data: Any) -> Any:
        return self.request("/player/avatar/", "POST", avatar_data)

    # ------------------------------------------------------------------
    # Games
    # ------------------------------------------------------------------

    def get_games_scheduled(self) -> Any:
        """Retrieves the schedule entries for every season the user can access."""
        return self.request("/games/scheduled/")

    def get_games_user(self) -> Any:
        """Retrieves the games the user has sideloaded."""
        return self.request("/games/user/")

    def get_games_system(self) -> Any:
        """Retrieves the additional system applications."""
        return self.request("/games/system/")

    def get_games_purchased(self) -> Any:
        """Retrieves the games the user bought through Catalog."""
        return self.request("/games/purchased/")

    def get_games_catalog(self) -> Any:
        """Retrieves every game available through Catalog."""
        return self.request("/games/catalog")

    def get_game_catalog_by_id(self, idx: int | str) -> Any:
        return self.request(f"/games/catalog/{idx}")

    def purchase_game(self, bundle_id: str) -> Any:
        """Initiates the purchase flow for a game."""
        return self.request(f"/games/{bundle_id}/purchase/", "POST")

    def confirm_purchase(self, bundle_id: str) -> Any:
        """Completes the purchase flow for a game."""
        return self.request(f"/games/{bundle_id}/purchase/confirm", "POST")

    # ------------------------------------------------------------------
    # Firmware
    # ------------------------------------------------------------------

    def get_firmware(self, version: str | None = None) -> Any:
        """Fetches the firmware update offered to a device on *version*.

        Args:
            version: Current firmware version of the device. Defaults to the
                configured DEFAULT_FIRMWARE_VERSION.
        """
        version = version or self._settings.DEFAULT_FIRMWARE_VERSION
        return self.request("/firmware", params={"current_version": version})
