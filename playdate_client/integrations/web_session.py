"""Cookie session against the Playdate web frontend.

The frontend is a form-based site that guards every POST with a per-page
anti-forgery token (a hidden ``csrfmiddlewaretoken`` input).  This module
scrapes that field with a targeted regex, signs the user in and submits the
device add/remove forms, all through one shared cookie jar.
"""

from __future__ import annotations

import html
import logging
import re
from typing import Callable, Mapping

import requests

from playdate_client.config import Config, config
from playdate_client.core.errors import (
    AuthenticationError,
    PageNotFoundError,
    PlaydateHTTPError,
)
from playdate_client.core.models import Credential

logger = logging.getLogger("playdate_client.web_session")

__all__ = ["CSRF_FIELD", "SessionAuthenticator", "extract_hidden_field"]

CSRF_FIELD = "csrfmiddlewaretoken"

_INPUT_TAG_PATTERN = re.compile(r"<input\b[^>]*>", re.IGNORECASE)
# name="x", name='x' or name=x
_ATTRIBUTE_PATTERN = re.compile(
    r"""([^\s=/>"']+)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))""",
)


def extract_hidden_field(document: str, field_name: str) -> str | None:
    """Return the value of the ``<input>`` named *field_name*, or None.

    Attribute order and quoting style do not matter; entities in the value
    are unescaped.
    """
    for tag in _INPUT_TAG_PATTERN.finditer(document):
        attributes: dict[str, str] = {}
        for match in _ATTRIBUTE_PATTERN.finditer(tag.group(0)):
            name = match.group(1).lower()
            value = next((g for g in match.group(2, 3, 4) if g is not None), "")
            attributes.setdefault(name, value)
        if html.unescape(attributes.get("name", "")) == field_name and "value" in attributes:
            return html.unescape(attributes["value"])
    return None


class SessionAuthenticator:
    """Signs in to the web frontend and submits its protected forms.

    All requests share one ``requests.Session``; its cookie jar is the only
    carrier of the web session identity.

    Attributes:
        base_url: Web root, e.g. ``https://play.date``.
        credential: The client's credential, updated on successful login.
    """

    def __init__(
        self,
        credential: Credential,
        *,
        settings: Config | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings or config
        self.base_url: str = self._settings.WEB_BASE_URL
        self.credential = credential
        self._session = session or requests.Session()

    @property
    def cookies(self) -> requests.cookies.RequestsCookieJar:
        return self._session.cookies

    def url_for(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _timeout(self, timeout: float | None) -> float:
        return timeout if timeout is not None else self._settings.REQUEST_TIMEOUT

    def fetch_anti_forgery_token(self, page_url: str, *, timeout: float | None = None) -> str:
        """Fetch *page_url* and return its anti-forgery token.

        Args:
            page_url: Absolute URL of the page holding the form.
            timeout: Request timeout in seconds.

        Returns:
            The value of the hidden ``csrfmiddlewaretoken`` input.

        Raises:
            PageNotFoundError: If the page is 404 or has no token field.
            PlaydateHTTPError: On any other non-success status.
        """
        response = self._session.get(page_url, timeout=self._timeout(timeout))

        if response.status_code == 404:
            raise PageNotFoundError(f"Page not found: {page_url}")
        if not response.ok:
            raise PlaydateHTTPError(
                f"Unexpected status {response.status_code} for {page_url}",
                status_code=response.status_code,
            )

        token = extract_hidden_field(response.text, CSRF_FIELD)
        if not token:
            raise PageNotFoundError(f"No {CSRF_FIELD} on {page_url}")
        return token

    def _post_form(self, page_url: str, form: Mapping[str, str], timeout: float | None) -> requests.Response:
        return self._session.post(
            page_url,
            data=dict(form),
            headers={
                "Referer": page_url,
                "Content-Type": "application/x-www-form-urlencoded",
            },
            timeout=self._timeout(timeout),
        )

    def login(self, username: str, password: str, *, timeout: float | None = None) -> bool:
        """Sign in with *username* and *password*.

        Returns:
            True on success.

        Raises:
            AuthenticationError: If the sign-in POST is rejected.
        """
        url = self.url_for("/signin/")
        token = self.fetch_anti_forgery_token(url, timeout=timeout)

        form = {
            CSRF_FIELD: token,
            "username": username,
            "password": password,
        }
        response = self._post_form(url, form, timeout)

        if not response.ok:
            logger.warning("Sign-in for %s rejected with status %d", username, response.status_code)
            raise AuthenticationError("Login failed.")

        self.credential.mark_session_established()
        logger.info("Signed in as %s", username)
        return True

    def submit_form(
        self,
        page_url: str,
        fields: Mapping[str, str] | None = None,
        *,
        timeout: float | None = None,
        checkpoint: Callable[[], float | None] | None = None,
    ) -> requests.Response:
        """Submit a protected form on *page_url*.

        A fresh anti-forgery token is fetched first and sent ahead of *fields*.

        Args:
            page_url: Absolute URL of the form page.
            fields: Form fields besides the anti-forgery token.
            timeout: Per-request timeout in seconds.
            checkpoint: Called before the GET and again before the POST. It
                may raise to abort; otherwise it returns the timeout for the
                request that follows.

        Returns:
            The raw response; the caller decides what counts as success.
        """
        if checkpoint is not None:
            timeout = checkpoint()
        token = self.fetch_anti_forgery_token(page_url, timeout=timeout)
        form: dict[str, str] = {CSRF_FIELD: token}
        if fields:
            form.update(fields)

        if checkpoint is not None:
            timeout = checkpoint()
        return self._post_form(page_url, form, timeout)
