"""
Tests for the cryptographic helpers: password hashing, JWTs, and OTPs.
"""

from datetime import datetime, timedelta, timezone

import pytest
from jose import ExpiredSignatureError, JWTError, jwt

from storefront.config import settings
from storefront.security import (
    ADMIN_SCOPE,
    USER_SCOPE,
    create_access_token,
    decode_access_token,
    generate_otp,
    hash_otp,
    hash_password,
    verify_otp,
    verify_password,
)


class TestPasswordHashing:

    def test_hash_is_not_plaintext_and_verifies(self):
        hashed = hash_password("Sh0pper!Key")
        assert hashed != "Sh0pper!Key"
        assert hashed.startswith("$argon2")
        assert verify_password("Sh0pper!Key", hashed)
        assert not verify_password("Sh0pper!Kez", hashed)

    def test_hashes_are_salted(self):
        assert hash_password("Sh0pper!Key") != hash_password("Sh0pper!Key")


class TestTokens:

    def test_user_token_lasts_seven_days(self):
        now = datetime.now(timezone.utc)
        token = create_access_token({"sub": "abc"}, scope=USER_SCOPE, now=now)
        payload = decode_access_token(token)
        assert payload["sub"] == "abc"
        assert payload["scope"] == "user"
        assert payload["exp"] == int((now + timedelta(days=7)).timestamp())

    def test_admin_token_lasts_one_hour(self):
        now = datetime.now(timezone.utc)
        token = create_access_token({"sub": "abc"}, scope=ADMIN_SCOPE, now=now)
        payload = decode_access_token(token)
        assert payload["scope"] == "admin"
        assert payload["exp"] == int((now + timedelta(hours=1)).timestamp())

    def test_expired_token_is_rejected(self):
        issued = datetime.now(timezone.utc) - timedelta(days=8)
        token = create_access_token({"sub": "abc"}, now=issued)
        with pytest.raises(ExpiredSignatureError):
            decode_access_token(token)

    def test_tampered_token_is_rejected(self):
        token = create_access_token({"sub": "abc", "role": "user"})
        header, payload, signature = token.split(".")
        forged_payload = jwt.encode(
            {"sub": "abc", "role": "admin"}, "not-the-secret", algorithm=settings.ALGORITHM
        ).split(".")[1]
        with pytest.raises(JWTError):
            decode_access_token(f"{header}.{forged_payload}.{signature}")

    def test_wrong_secret_is_rejected(self):
        token = jwt.encode({"sub": "abc"}, "another-secret", algorithm=settings.ALGORITHM)
        with pytest.raises(JWTError):
            decode_access_token(token)


class TestOTP:

    def test_codes_are_six_digits(self):
        for _ in range(50):
            code = generate_otp()
            assert len(code) == 6
            assert code.isdigit()

    def test_digest_is_not_the_code(self):
        assert hash_otp("123456") != "123456"
        assert len(hash_otp("123456")) == 64

    def test_matching_code_before_expiry(self):
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        expires = now + timedelta(minutes=10)
        assert verify_otp("123456", hash_otp("123456"), expires, now)

    def test_wrong_code(self):
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        expires = now + timedelta(minutes=10)
        assert not verify_otp("654321", hash_otp("123456"), expires, now)

    def test_code_at_expiry_instant_is_rejected(self):
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert not verify_otp("123456", hash_otp("123456"), now, now)

    def test_naive_expiry_from_database(self):
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        naive_expiry = datetime(2026, 1, 1, 12, 5)
        assert verify_otp("123456", hash_otp("123456"), naive_expiry, now)

    def test_no_code_issued(self):
        assert not verify_otp("123456", None, None)
