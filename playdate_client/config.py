"""
Configuration for playdate-client.
Resolves endpoints, timeouts and credentials from settings.json and the environment.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger("playdate_client.config")


__all__ = ["Config", "config"]


@dataclass
class Config:
    """
    Central configuration handling for the client.
    Manages endpoints, timeouts, the data directory and runtime secrets.
    """

    DATA_DIR: Path = Path.home() / ".playdate_client"
    SETTINGS_FILE: Path | None = None

    HOST: str = "play.date"
    REQUEST_TIMEOUT: float = 10.0
    DEFAULT_FIRMWARE_VERSION: str = "1.13.6"
    IDEMPOTENCY_KEY_LENGTH: int = 16

    # Runtime-only, NOT persisted to JSON
    ACCESS_TOKEN: str | None = None
    USERNAME: str | None = None
    PASSWORD: str | None = None
    UNLOCK_KEY: str | None = None

    def __post_init__(self):
        """Load settings and environment overrides after instantiation."""
        if self.SETTINGS_FILE is None:
            self.SETTINGS_FILE = self.DATA_DIR / "settings.json"

        self._load_settings()

        load_dotenv()
        self.HOST = os.getenv("PLAYDATE_HOST", self.HOST)
        self.ACCESS_TOKEN = os.getenv("PLAYDATE_ACCESS_TOKEN", self.ACCESS_TOKEN)
        self.USERNAME = os.getenv("PLAYDATE_USERNAME", self.USERNAME)
        self.PASSWORD = os.getenv("PLAYDATE_PASSWORD", self.PASSWORD)
        self.UNLOCK_KEY = os.getenv("PLAYDATE_UNLOCK_KEY", self.UNLOCK_KEY)

        env_timeout = os.getenv("PLAYDATE_REQUEST_TIMEOUT")
        if env_timeout:
            try:
                self.REQUEST_TIMEOUT = float(env_timeout)
            except ValueError:
                logger.warning("Ignoring invalid PLAYDATE_REQUEST_TIMEOUT: %r", env_timeout)

    @property
    def API_BASE_URL(self) -> str:
        return f"https://{self.HOST}/api/v2"

    @property
    def WEB_BASE_URL(self) -> str:
        return f"https://{self.HOST}"

    def _load_settings(self) -> None:
        """Load non-secret settings from JSON file."""
        if not self.SETTINGS_FILE.exists():
            return

        try:
            with open(self.SETTINGS_FILE, "r", encoding="utf-8") as f:
                data = json.load(f)

                self.HOST = data.get("host", self.HOST)
                self.REQUEST_TIMEOUT = float(data.get("request_timeout", self.REQUEST_TIMEOUT))
                self.DEFAULT_FIRMWARE_VERSION = data.get("default_firmware_version", self.DEFAULT_FIRMWARE_VERSION)

        except (OSError, ValueError) as e:
            logger.error("Could not load settings from %s: %s", self.SETTINGS_FILE, e)

    def save(self) -> None:
        """Save non-secret configuration to JSON file."""
        data = {
            "host": self.HOST,
            "request_timeout": self.REQUEST_TIMEOUT,
            "default_firmware_version": self.DEFAULT_FIRMWARE_VERSION,
        }

        try:
            self.SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
            with open(self.SETTINGS_FILE, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.error("Could not save settings to %s: %s", self.SETTINGS_FILE, e)


# Global instance
config = Config()
