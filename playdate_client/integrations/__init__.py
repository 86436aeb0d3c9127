from __future__ import annotations

__all__: list[str] = ["PlaydateAPI", "SessionAuthenticator"]

from playdate_client.integrations.playdate_api import PlaydateAPI
from playdate_client.integrations.web_session import SessionAuthenticator
