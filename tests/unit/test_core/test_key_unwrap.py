# tests/unit/test_core/test_key_unwrap.py

"""Unit tests for key envelope unwrapping."""

import base64

import pytest
from Cryptodome.Cipher import AES

from playdate_client.core.errors import FormatError, IntegrityError, KeyUnwrapError
from playdate_client.core.key_unwrap import (
    get_firmware_decryption_key,
    get_game_decryption_key,
    unwrap,
)

UNLOCK_KEY = bytes(range(32))
IV = bytes.fromhex("000102030405060708090a0b")


def make_envelope(plaintext: bytes, key: bytes = UNLOCK_KEY, iv: bytes = IV) -> str:
    cipher = AES.new(key, AES.MODE_GCM, nonce=iv)
    ciphertext, tag = cipher.encrypt_and_digest(plaintext)
    return base64.b64encode(iv + ciphertext + tag).decode("ascii")


def flip_byte(envelope_b64: str, index: int) -> str:
    raw = bytearray(base64.b64decode(envelope_b64))
    raw[index] ^= 0x01
    return base64.b64encode(bytes(raw)).decode("ascii")


class TestUnwrap:
    """Tests for unwrap()."""

    def test_hello_world_example(self):
        envelope = make_envelope(b"hello world!")
        assert unwrap(UNLOCK_KEY, envelope) == b"hello world!"

    def test_round_trip_content_key(self):
        content_key = bytes.fromhex("f0e1d2c3b4a5968778695a4b3c2d1e0f" * 2)
        assert unwrap(UNLOCK_KEY, make_envelope(content_key)) == content_key

    def test_deterministic(self):
        envelope = make_envelope(b"same key every time")
        assert unwrap(UNLOCK_KEY, envelope) == unwrap(UNLOCK_KEY, envelope)

    def test_accepts_bytes_envelope(self):
        envelope = make_envelope(b"bytes in").encode("ascii")
        assert unwrap(UNLOCK_KEY, envelope) == b"bytes in"

    def test_empty_ciphertext(self):
        """An envelope of exactly IV + tag carries an empty key."""
        envelope = make_envelope(b"")
        assert len(base64.b64decode(envelope)) == 28
        assert unwrap(UNLOCK_KEY, envelope) == b""

    def test_wrong_key_raises_integrity_error(self):
        envelope = make_envelope(b"hello world!")
        with pytest.raises(IntegrityError):
            unwrap(bytes(32), envelope)

    @pytest.mark.parametrize("index", [12, 17, 23, -16, -8, -1])
    def test_tampered_ciphertext_or_tag_raises(self, index: int):
        envelope = make_envelope(b"hello world!")
        with pytest.raises(IntegrityError):
            unwrap(UNLOCK_KEY, flip_byte(envelope, index))

    def test_tampered_iv_raises(self):
        envelope = make_envelope(b"hello world!")
        with pytest.raises(IntegrityError):
            unwrap(UNLOCK_KEY, flip_byte(envelope, 0))

    @pytest.mark.parametrize("size", [0, 1, 12, 27])
    def test_short_envelope_raises_format_error(self, size: int):
        envelope = base64.b64encode(b"\x00" * size).decode("ascii")
        with pytest.raises(FormatError):
            unwrap(UNLOCK_KEY, envelope)

    def test_accepts_unpadded_envelope(self):
        envelope = make_envelope(b"hello world!")
        assert envelope.endswith("=")
        assert unwrap(UNLOCK_KEY, envelope.rstrip("=")) == b"hello world!"

    def test_accepts_line_wrapped_envelope(self):
        envelope = make_envelope(b"hello world!")
        wrapped = envelope[:20] + "\n" + envelope[20:40] + "\r\n " + envelope[40:] + "\n"
        assert unwrap(UNLOCK_KEY, wrapped) == b"hello world!"

    def test_accepts_urlsafe_alphabet(self):
        raw = base64.b64decode(make_envelope(b"\xfb\xff" * 8))
        envelope = base64.urlsafe_b64encode(raw).decode("ascii")
        assert unwrap(UNLOCK_KEY, envelope) == b"\xfb\xff" * 8

    def test_invalid_base64_raises_format_error(self):
        with pytest.raises(FormatError):
            unwrap(UNLOCK_KEY, "not*base64!")

    @pytest.mark.parametrize("envelope", ["AAAAA", "AB*C", "\u00e9t\u00e9"])
    def test_malformed_base64_raises_format_error(self, envelope: str):
        with pytest.raises(FormatError):
            unwrap(UNLOCK_KEY, envelope)

    @pytest.mark.parametrize("key_size", [16, 24, 31, 33])
    def test_wrong_unlock_key_size_raises_format_error(self, key_size: int):
        with pytest.raises(FormatError):
            unwrap(b"\x00" * key_size, make_envelope(b"x"))

    def test_errors_share_base_class(self):
        assert issubclass(IntegrityError, KeyUnwrapError)
        assert issubclass(FormatError, KeyUnwrapError)


class TestCatalogHelpers:
    """Tests for the game and firmware helpers."""

    def test_game_key(self):
        game = {"bundle_id": "com.example.game", "decryption_key": make_envelope(b"game key 123")}
        assert get_game_decryption_key(UNLOCK_KEY, game) == b"game key 123"

    def test_firmware_key(self):
        update = {"version": "2.0.0", "decryption_key": make_envelope(b"firmware key")}
        assert get_firmware_decryption_key(UNLOCK_KEY, update) == b"firmware key"

    def test_missing_field_raises_format_error(self):
        with pytest.raises(FormatError):
            get_game_decryption_key(UNLOCK_KEY, {"bundle_id": "com.example.game"})
