# tests/unit/test_core/test_models.py

"""Unit tests for credentials, serial validation and RegistrationSession."""

import pytest

from playdate_client.core.errors import InvalidSerialError, RegistrationError
from playdate_client.core.models import (
    Credential,
    RegistrationSession,
    RegistrationState,
    generate_idempotency_key,
    validate_serial,
)


class TestValidateSerial:
    """Tests for validate_serial()."""

    @pytest.mark.parametrize("serial", ["PDU1-Y123456", "PDU1-Y000000", "PDU1-Y999999"])
    def test_valid_serials_pass(self, serial: str):
        assert validate_serial(serial) == serial

    @pytest.mark.parametrize(
        "serial",
        [
            "",
            "PDU1-Y12345",  # too short
            "PDU1-Y1234567",  # too long
            "PDU2-Y123456",  # wrong prefix
            "pdu1-y123456",  # wrong case
            "PDU1-X123456",
            "PDU1-Y12345A",  # non-digit suffix
            "PDU1-Y12 456",
            "PDU1-Y١٢٣٤٥٦",  # non-ASCII digits
            " PDU1-Y12345",
            "XXXXXXXXXXXX",
        ],
    )
    def test_invalid_serials_raise(self, serial: str):
        with pytest.raises(InvalidSerialError):
            validate_serial(serial)

    def test_non_string_raises(self):
        with pytest.raises(InvalidSerialError):
            validate_serial(123456789012)  # type: ignore[arg-type]

    def test_invalid_serial_is_value_error(self):
        """Callers catching ValueError also see serial errors."""
        with pytest.raises(ValueError):
            validate_serial("nope")


class TestCredential:
    def test_defaults(self):
        credential = Credential()
        assert credential.access_token is None
        assert credential.session_established is False

    def test_replace_access_token_overwrites(self):
        credential = Credential(access_token="a", session_established=True)
        credential.replace_access_token("b")
        assert credential.access_token == "b"
        assert credential.session_established is True


class TestIdempotencyKey:
    def test_numeric_and_fixed_length(self):
        key = generate_idempotency_key(16)
        assert len(key) == 16
        assert key.isdigit()

    def test_keys_differ(self):
        keys = {generate_idempotency_key(16) for _ in range(20)}
        assert len(keys) > 1


class TestRegistrationSession:
    """Tests for the registration state machine value object."""

    def _walk_to(self, session: RegistrationSession, *states: RegistrationState) -> None:
        for state in states:
            session.advance(state)

    def test_happy_path_transitions(self):
        session = RegistrationSession(serial="PDU1-Y123456")
        assert session.state is RegistrationState.IDLE

        self._walk_to(
            session,
            RegistrationState.DEREGISTERING,
            RegistrationState.AWAITING_PIN,
        )
        key = session.issue_idempotency_key()
        self._walk_to(session, RegistrationState.PIN_OBTAINED, RegistrationState.AWAITING_ACCESS_TOKEN)
        assert session.idempotency_key == key

        session.complete()
        assert session.state is RegistrationState.REGISTERED
        assert session.idempotency_key is None
        assert session.is_terminal

    def test_skipping_a_state_is_rejected(self):
        session = RegistrationSession(serial="PDU1-Y123456")
        with pytest.raises(RegistrationError, match="Illegal"):
            session.advance(RegistrationState.PIN_OBTAINED)
        assert session.state is RegistrationState.IDLE

    def test_advance_to_failed_requires_fail(self):
        session = RegistrationSession(serial="PDU1-Y123456")
        with pytest.raises(RegistrationError):
            session.advance(RegistrationState.FAILED)

    def test_fail_keeps_idempotency_key(self):
        session = RegistrationSession(serial="PDU1-Y123456")
        session.advance(RegistrationState.AWAITING_PIN)
        key = session.issue_idempotency_key()
        session.advance(RegistrationState.PIN_OBTAINED)

        session.fail("add device rejected")

        assert session.state is RegistrationState.FAILED
        assert session.idempotency_key == key
        assert session.error == "add device rejected"
        assert session.can_complete

    def test_failed_without_key_cannot_complete(self):
        session = RegistrationSession(serial="PDU1-Y123456")
        session.fail("boom")
        assert not session.can_complete

    def test_registered_session_cannot_fail(self):
        session = RegistrationSession(serial="PDU1-Y123456")
        session.advance(RegistrationState.AWAITING_PIN)
        session.issue_idempotency_key()
        session.advance(RegistrationState.PIN_OBTAINED)
        session.advance(RegistrationState.AWAITING_ACCESS_TOKEN)
        session.complete()

        with pytest.raises(RegistrationError):
            session.fail("too late")
        assert not session.can_complete
