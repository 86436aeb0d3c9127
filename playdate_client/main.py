#!/usr/bin/env python3
"""playdate-client - command-line entry point."""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

import requests

from playdate_client.config import config
from playdate_client.core.client import PlaydateClient
from playdate_client.core.errors import PlaydateError
from playdate_client.core.key_unwrap import UNLOCK_KEY_SIZE, unwrap
from playdate_client.core.logging import logger, setup_logging
from playdate_client.version import __app_name__, __version__

__all__ = ["build_parser", "main"]

_GAME_LISTS = {
    "purchased": "get_games_purchased",
    "user": "get_games_user",
    "system": "get_games_system",
    "scheduled": "get_games_scheduled",
    "catalog": "get_games_catalog",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="playdate-client", description=__app_name__)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument("--log-file", type=Path, help="also write logs to this file")

    sub = parser.add_subparsers(dest="command", required=True)

    register = sub.add_parser("register", help="register a device and store its access token")
    register.add_argument("serial", help="device serial number, e.g. PDU1-Y123456")
    register.add_argument("--timeout", type=float, help="overall time budget in seconds")

    games = sub.add_parser("games", help="list games")
    games.add_argument("kind", choices=sorted(_GAME_LISTS))

    firmware = sub.add_parser("firmware", help="show the firmware update for a version")
    firmware.add_argument("--version", dest="firmware_version", help="current firmware version")

    unwrap_cmd = sub.add_parser("unwrap", help="unwrap a decryption_key envelope")
    unwrap_cmd.add_argument("--envelope", required=True, help="base64 envelope")
    unwrap_cmd.add_argument("--unlock-key", help="hex unlock key (default: PLAYDATE_UNLOCK_KEY)")

    return parser


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def _parse_unlock_key(value: str | None) -> bytes:
    if not value:
        raise PlaydateError("No unlock key given (use --unlock-key or PLAYDATE_UNLOCK_KEY)")
    try:
        key = bytes.fromhex(value)
    except ValueError as exc:
        raise PlaydateError("Unlock key must be hex encoded") from exc
    if len(key) != UNLOCK_KEY_SIZE:
        raise PlaydateError(f"Unlock key must be {UNLOCK_KEY_SIZE} bytes")
    return key


def _register(client: PlaydateClient, args: argparse.Namespace) -> None:
    username = config.USERNAME or input("Username: ")
    password = config.PASSWORD or getpass.getpass("Password: ")
    client.login(username, password)

    result = client.register_device(args.serial, timeout=args.timeout)
    logger.info("Registered %s; export the token below as PLAYDATE_ACCESS_TOKEN", args.serial)
    print(result["access_token"])


def run(args: argparse.Namespace) -> int:
    """Execute the parsed command. Returns the exit code."""
    if args.command == "unwrap":
        key = unwrap(_parse_unlock_key(args.unlock_key or config.UNLOCK_KEY), args.envelope)
        print(key.hex())
        return 0

    client = PlaydateClient.from_config()

    if args.command == "register":
        _register(client, args)
    elif args.command == "games":
        _print_json(getattr(client.api, _GAME_LISTS[args.kind])())
    elif args.command == "firmware":
        _print_json(client.api.get_firmware(args.firmware_version))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Main command-line execution flow."""
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    try:
        return run(args)
    except (PlaydateError, requests.RequestException) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
