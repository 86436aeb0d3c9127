# tests/conftest.py
from types import SimpleNamespace
from typing import Callable
from unittest.mock import MagicMock

import pytest

SERIAL = "PDU1-Y123456"
UNLOCK_KEY = bytes(range(32))

_ENV_VARS = (
    "PLAYDATE_HOST",
    "PLAYDATE_ACCESS_TOKEN",
    "PLAYDATE_USERNAME",
    "PLAYDATE_PASSWORD",
    "PLAYDATE_UNLOCK_KEY",
    "PLAYDATE_REQUEST_TIMEOUT",
)


def csrf_page(token: str) -> str:
    """Minimal Django-style form page carrying an anti-forgery token."""
    return (
        "<html><body><form method='post'>"
        f'<input type="hidden" name="csrfmiddlewaretoken" value="{token}">'
        '<input type="text" name="username">'
        "</form></body></html>"
    )


def build_response(status_code: int = 200, json_data=None, text: str = "") -> MagicMock:
    """A stand-in for requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.text = text
    if json_data is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    return build_response


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Config isolated from the user's environment and settings file."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("playdate_client.config.load_dotenv", lambda *args, **kwargs: False)

    from playdate_client.config import Config

    return Config(DATA_DIR=tmp_path)


@pytest.fixture
def wiring(settings):
    """Registrar wired to a real API client and web session over mocked transports.

    ``pages`` maps web URLs to GET responses, ``posts`` maps web URLs to POST
    responses and ``api_routes`` maps API URLs to responses. Unknown URLs
    answer 404.
    """
    from playdate_client.core.device_registrar import DeviceRegistrar
    from playdate_client.core.models import Credential
    from playdate_client.integrations.playdate_api import PlaydateAPI
    from playdate_client.integrations.web_session import SessionAuthenticator

    pages: dict = {}
    posts: dict = {}
    api_routes: dict = {}

    web_session = MagicMock()
    web_session.get.side_effect = lambda url, **kwargs: pages.get(url, build_response(404))
    web_session.post.side_effect = lambda url, **kwargs: posts.get(url, build_response(404))

    api_session = MagicMock()
    api_session.request.side_effect = lambda method, url, **kwargs: api_routes.get(
        url, build_response(404, {"message": "Not found"})
    )

    credential = Credential(access_token="old_token", session_established=True)
    api = PlaydateAPI("old_token", settings=settings, session=api_session)
    web = SessionAuthenticator(credential, settings=settings, session=web_session)
    registrar = DeviceRegistrar(credential, api, web, settings=settings)

    return SimpleNamespace(
        credential=credential,
        api=api,
        web=web,
        registrar=registrar,
        web_session=web_session,
        api_session=api_session,
        pages=pages,
        posts=posts,
        api_routes=api_routes,
    )
