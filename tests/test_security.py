"""Password hashing and token helpers."""

from datetime import timedelta
from uuid import uuid4

import pytest

from taskboard.exceptions import AuthenticationError, InvalidArgumentError
from taskboard.services import security


def test_hash_and_verify():
    hashed = security.hash_password("Secret123")
    assert hashed != "Secret123"
    assert security.verify_password("Secret123", hashed)
    assert not security.verify_password("secret123", hashed)


def test_verify_against_malformed_hash():
    assert not security.verify_password("Secret123", "not-a-hash")


def test_access_token_carries_identity():
    user_id = uuid4()
    token, expires_at = security.create_access_token(user_id, "manager", "m@example.com")
    payload = security.decode_access_token(token)
    assert security.user_id_from_payload(payload) == user_id
    assert payload["role"] == "manager"
    assert payload["email"] == "m@example.com"
    assert int(expires_at.timestamp()) == payload["exp"]


def test_expired_token_rejected_unless_expiry_skipped():
    user_id = uuid4()
    token, _ = security.create_access_token(
        user_id, "developer", "d@example.com", expires_delta=timedelta(minutes=-5)
    )
    with pytest.raises(AuthenticationError, match="expired"):
        security.decode_access_token(token)

    payload = security.decode_access_token(token, verify_exp=False)
    assert security.user_id_from_payload(payload) == user_id


def test_tampered_token_rejected():
    token, _ = security.create_access_token(uuid4(), "developer", "d@example.com")
    with pytest.raises(AuthenticationError):
        security.decode_access_token(token[:-2] + "xx")


def test_reset_token_is_not_an_access_token():
    reset = security.create_password_reset_token(uuid4())
    with pytest.raises(AuthenticationError):
        security.decode_access_token(reset)


def test_access_token_is_not_a_reset_token():
    token, _ = security.create_access_token(uuid4(), "developer", "d@example.com")
    with pytest.raises(InvalidArgumentError):
        security.decode_password_reset_token(token)


def test_reset_token_round_trip():
    user_id = uuid4()
    assert security.decode_password_reset_token(security.create_password_reset_token(user_id)) == user_id


def test_refresh_tokens_are_unique():
    assert security.create_refresh_token() != security.create_refresh_token()
