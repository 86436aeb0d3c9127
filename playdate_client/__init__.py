"""Python client for the Playdate web frontend and device API."""

from __future__ import annotations

from playdate_client.version import __version__

__all__ = ["__version__"]
