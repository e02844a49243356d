"""
Unit tests for core.security module.
Tests password hashing, session cookie signing and license token helpers.
"""
import datetime as dt
import re

import jwt
import pytest

from app.config import settings
from app.core.security import (
    SESSION_ALG,
    create_session_token,
    decode_session_token,
    generate_license_token,
    hash_password,
    normalize_license_token,
    sha256_hex,
    verify_password,
)


class TestPasswordHashing:
    """Tests for password hashing and verification."""

    def test_hash_password_returns_different_hash_each_time(self):
        """Password hashing should produce different hashes (salt included)."""
        password = "TestPassword123"
        assert hash_password(password) != hash_password(password)

    def test_hash_password_is_not_plain_text(self):
        hashed = hash_password("TestPassword123")
        assert isinstance(hashed, str)
        assert hashed != "TestPassword123"
        assert hashed.startswith("$argon2")

    def test_verify_password_correct_and_incorrect(self):
        hashed = hash_password("TestPassword123")
        assert verify_password("TestPassword123", hashed) is True
        assert verify_password("WrongPassword456", hashed) is False

    def test_verify_password_malformed_hash_returns_false(self):
        """A broken stored hash must not blow up the login path."""
        assert verify_password("whatever", "not-a-hash") is False


class TestSessionTokens:
    """Tests for the signed session cookie value."""

    def test_token_carries_only_session_reference(self):
        token = create_session_token("session-123")
        payload = jwt.decode(token, settings.session_secret, algorithms=[SESSION_ALG])
        assert set(payload) == {"sid", "iat", "exp"}
        assert payload["sid"] == "session-123"

    def test_decode_returns_session_id(self):
        token = create_session_token("session-456")
        assert decode_session_token(token) == "session-456"

    def test_default_expiration_matches_setting(self):
        token = create_session_token("session-exp")
        payload = jwt.decode(token, settings.session_secret, algorithms=[SESSION_ALG])
        diff_minutes = (payload["exp"] - payload["iat"]) / 60
        # Allow small tolerance for timing
        assert abs(diff_minutes - settings.session_expire_minutes) < 1

    def test_signing_follows_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "session_expire_minutes", 5)
        token = create_session_token("session-short")
        payload = jwt.decode(token, settings.session_secret, algorithms=[SESSION_ALG])
        assert payload["exp"] - payload["iat"] == 5 * 60

        monkeypatch.setattr(settings, "session_secret", "rotated-secret")
        with pytest.raises(jwt.InvalidSignatureError):
            decode_session_token(token)

    def test_expired_token_rejected(self):
        past = dt.datetime.now(dt.timezone.utc) - dt.timedelta(minutes=1)
        token = create_session_token("session-old", expires_at=past)
        with pytest.raises(jwt.ExpiredSignatureError):
            decode_session_token(token)

    def test_tampered_token_rejected(self):
        token = jwt.encode({"sid": "forged"}, "wrong-secret", algorithm="HS256")
        with pytest.raises(jwt.InvalidSignatureError):
            decode_session_token(token)

    def test_token_without_sid_rejected(self):
        token = jwt.encode({"sub": "someone"}, settings.session_secret, algorithm=SESSION_ALG)
        with pytest.raises(jwt.InvalidTokenError):
            decode_session_token(token)

    def test_garbage_rejected(self):
        with pytest.raises(jwt.InvalidTokenError):
            decode_session_token("invalid.token.here")


class TestLicenseTokens:
    """Tests for license token generation and hashing."""

    def test_format(self):
        token = generate_license_token("LIC")
        assert re.fullmatch(r"LIC-[A-Z0-9]{4}-[A-Z0-9]{4}-[A-Z0-9]{4}-[A-Z0-9]{4}", token)

    def test_tokens_are_unique(self):
        tokens = {generate_license_token() for _ in range(200)}
        assert len(tokens) == 200

    def test_normalize_strips_and_uppercases(self):
        assert normalize_license_token("  lic-ab12-cd34-ef56-gh78 ") == "LIC-AB12-CD34-EF56-GH78"
        assert normalize_license_token(None) == ""

    def test_sha256_hex(self):
        digest = sha256_hex("LIC-AB12-CD34-EF56-GH78")
        assert len(digest) == 64
        assert digest == sha256_hex("LIC-AB12-CD34-EF56-GH78")
        assert digest != sha256_hex("LIC-AB12-CD34-EF56-GH79")
