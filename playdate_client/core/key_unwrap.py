# playdate_client/core/key_unwrap.py

"""Unwrapping of the content keys that protect games and firmware.

Catalog entries carry a ``decryption_key`` field: a base64 envelope laid out
as ``IV (12 bytes) || ciphertext || GCM tag (16 bytes)``.  The envelope is
opened with AES-256-GCM under an unlock key that is provisioned out of band.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Mapping

from Cryptodome.Cipher import AES

from playdate_client.core.errors import FormatError, IntegrityError

logger = logging.getLogger("playdate_client.key_unwrap")

__all__ = [
    "IV_SIZE",
    "MIN_ENVELOPE_SIZE",
    "TAG_SIZE",
    "UNLOCK_KEY_SIZE",
    "get_firmware_decryption_key",
    "get_game_decryption_key",
    "unwrap",
]

IV_SIZE = 12
TAG_SIZE = 16
UNLOCK_KEY_SIZE = 32
MIN_ENVELOPE_SIZE = IV_SIZE + TAG_SIZE

_URLSAFE_TO_STANDARD = str.maketrans("-_", "+/")


def unwrap(unlock_key: bytes, envelope_b64: str | bytes) -> bytes:
    """Decrypt a base64 key envelope with AES-256-GCM.

    Args:
        unlock_key: The 32-byte unlock key.
        envelope_b64: Base64 text of ``IV || ciphertext || tag``.

    Returns:
        The raw content key.

    Raises:
        FormatError: If the unlock key is not 32 bytes, the envelope is not
            valid base64, or it decodes to fewer than 28 bytes.
        IntegrityError: If the authentication tag does not verify.
    """
    if len(unlock_key) != UNLOCK_KEY_SIZE:
        raise FormatError(f"Unlock key must be {UNLOCK_KEY_SIZE} bytes, got {len(unlock_key)}")

    envelope = _decode_envelope(envelope_b64)

    if len(envelope) < MIN_ENVELOPE_SIZE:
        raise FormatError(f"Envelope is {len(envelope)} bytes, need at least {MIN_ENVELOPE_SIZE}")

    iv = envelope[:IV_SIZE]
    ciphertext = envelope[IV_SIZE:-TAG_SIZE]
    tag = envelope[-TAG_SIZE:]

    cipher = AES.new(unlock_key, AES.MODE_GCM, nonce=iv)
    try:
        return cipher.decrypt_and_verify(ciphertext, tag)
    except ValueError as exc:
        # pycryptodome signals a tag mismatch with ValueError("MAC check failed")
        raise IntegrityError("Key envelope failed authentication") from exc


def _decode_envelope(envelope_b64: str | bytes) -> bytes:
    """Decode base64 leniently: whitespace, missing padding and the URL-safe alphabet are accepted."""
    try:
        if isinstance(envelope_b64, bytes):
            envelope_b64 = envelope_b64.decode("ascii")
        text = "".join(envelope_b64.split()).rstrip("=")
        text = text.translate(_URLSAFE_TO_STANDARD)
        text += "=" * (-len(text) % 4)
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise FormatError(f"Envelope is not valid base64: {exc}") from exc


def _decryption_key_of(item: Mapping[str, Any]) -> str:
    envelope = item.get("decryption_key")
    if not envelope:
        raise FormatError("Catalog entry has no decryption_key")
    return envelope


def get_game_decryption_key(unlock_key: bytes, game: Mapping[str, Any]) -> bytes:
    """Unwrap the content key of a game entry."""
    key = unwrap(unlock_key, _decryption_key_of(game))
    logger.debug("Unwrapped key for game %s", game.get("bundle_id", "<unknown>"))
    return key


def get_firmware_decryption_key(unlock_key: bytes, update: Mapping[str, Any]) -> bytes:
    """Unwrap the content key of a firmware update entry."""
    key = unwrap(unlock_key, _decryption_key_of(update))
    logger.debug("Unwrapped key for firmware %s", update.get("version", "<unknown>"))
    return key
