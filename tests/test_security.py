"""
Unit tests for password hashing, token signing/verification and the
duration parser used by the token expiry settings.
"""
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from cms.config import Settings, parse_duration, settings
from cms.exceptions import InvalidTokenError
from cms.models import Role
from cms.security import (
    hash_password,
    issue_access_token,
    issue_tokens,
    verify_access_token,
    verify_password,
    verify_refresh_token,
    verify_token,
)


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

def test_hash_and_verify_password():
    hashed = hash_password("secret1")
    assert hashed != "secret1"
    assert hashed.startswith("$2")
    assert verify_password("secret1", hashed)
    assert not verify_password("secret2", hashed)


def test_hashes_are_salted():
    assert hash_password("secret1") != hash_password("secret1")


def test_verify_password_with_malformed_hash():
    assert verify_password("secret1", "not-a-bcrypt-hash") is False


def test_long_passwords_hash_on_their_first_72_bytes():
    long_password = "x" * 100
    hashed = hash_password(long_password)
    assert verify_password(long_password, hashed)
    assert verify_password("x" * 72, hashed)
    assert not verify_password("x" * 71, hashed)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

def test_issue_tokens_claims():
    pair = issue_tokens("user-1", "a@x.com", Role.ADMIN)
    access = verify_access_token(pair.access_token)
    refresh = verify_refresh_token(pair.refresh_token)

    for claims in (access, refresh):
        assert claims["sub"] == "user-1"
        assert claims["email"] == "a@x.com"
        assert claims["role"] == "ADMIN"
    assert access["exp"] - access["iat"] == settings.JWT_ACCESS_EXPIRES_IN
    assert refresh["exp"] - refresh["iat"] == settings.JWT_REFRESH_EXPIRES_IN


def test_tokens_for_same_identity_are_distinct():
    assert issue_access_token("user-1", "a@x.com", "USER") != issue_access_token("user-1", "a@x.com", "USER")


def test_secrets_are_not_interchangeable():
    pair = issue_tokens("user-1", "a@x.com", Role.USER)
    with pytest.raises(InvalidTokenError):
        verify_access_token(pair.refresh_token)
    with pytest.raises(InvalidTokenError):
        verify_refresh_token(pair.access_token)


def test_verify_token_rejects_expired():
    expired = jwt.encode(
        {"sub": "user-1", "exp": datetime.now(timezone.utc) - timedelta(seconds=5)},
        "some-secret-with-enough-length-000000",
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(InvalidTokenError, match="expired"):
        verify_token(expired, "some-secret-with-enough-length-000000")


def test_verify_token_requires_subject():
    token = jwt.encode(
        {"email": "a@x.com", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        settings.JWT_ACCESS_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(InvalidTokenError):
        verify_access_token(token)


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_verify_token_rejects_malformed(token):
    with pytest.raises(InvalidTokenError):
        verify_access_token(token)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("value, seconds", [
    ("900", 900),
    (900, 900),
    ("30s", 30),
    ("15m", 900),
    ("2h", 7200),
    ("1d", 86400),
])
def test_parse_duration(value, seconds):
    assert parse_duration(value) == seconds


@pytest.mark.parametrize("value", ["", "15x", "m15", "-5m", "1.5h"])
def test_parse_duration_rejects_garbage(value):
    with pytest.raises(ValueError):
        parse_duration(value)


def test_settings_accept_duration_strings(monkeypatch):
    monkeypatch.setenv("JWT_ACCESS_EXPIRES_IN", "15m")
    monkeypatch.setenv("JWT_REFRESH_EXPIRES_IN", "7d")
    configured = Settings(_env_file=None)
    assert configured.JWT_ACCESS_EXPIRES_IN == 900
    assert configured.JWT_REFRESH_EXPIRES_IN == 7 * 86400
