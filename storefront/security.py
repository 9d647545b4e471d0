"""
Security utilities: password hashing, session tokens, and one-time passwords.

This module centralizes all cryptographic operations so they're easy to
audit and update. Three concerns are handled here:

1. PASSWORD HASHING (Argon2)
   - Passwords are never stored in plaintext
   - Argon2id is memory-hard and time-hard; passlib's CryptContext handles
     salting and lets us migrate schemes later ("deprecated='auto'")

2. SESSION TOKENS (JWT)
   - After login the principal receives a signed JWT with its id, email,
     role and the portal that issued it ("scope")
   - Signed with SECRET_KEY (HS256); any tampering breaks the signature
   - User-portal tokens live USER_TOKEN_EXPIRE_DAYS (7 days), admin-portal
     tokens ADMIN_TOKEN_EXPIRE_MINUTES (1 hour)
   - The server is stateless: nothing is stored, logout is client-side.
     The embedded role is informational only; authorization always reloads
     the principal from the database.

3. ONE-TIME PASSWORDS
   - 6-digit numeric codes from the `secrets` CSPRNG
   - Stored as HMAC-SHA256 digests keyed with SECRET_KEY, so a leaked row
     does not reveal a usable code
   - Compared with hmac.compare_digest (constant time)
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta

from jose import jwt
from passlib.context import CryptContext

from storefront.clock import ensure_utc, utcnow
from storefront.config import settings


# ---------------------------------------------------------------------------
# 1. Password Hashing (Argon2)
# ---------------------------------------------------------------------------

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """
    Hash a plaintext password using Argon2id.

    Policy validation is the caller's job (see storefront.password_policy);
    this function hashes whatever it is given.
    """
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a stored Argon2 hash (constant time)."""
    return pwd_context.verify(plain_password, hashed_password)


# ---------------------------------------------------------------------------
# 2. Session Tokens (JWT)
# ---------------------------------------------------------------------------

USER_SCOPE = "user"
ADMIN_SCOPE = "admin"


def token_lifetime(scope: str) -> timedelta:
    """Admin-portal tokens are deliberately much shorter-lived than user tokens."""
    if scope == ADMIN_SCOPE:
        return timedelta(minutes=settings.ADMIN_TOKEN_EXPIRE_MINUTES)
    return timedelta(days=settings.USER_TOKEN_EXPIRE_DAYS)


def create_access_token(
    data: dict,
    scope: str = USER_SCOPE,
    expires_delta: timedelta | None = None,
    now: datetime | None = None,
) -> str:
    """
    Create a signed JWT access token.

    The token payload contains:
      - "sub":   principal id (string) — the only claim used for lookup
      - "email", "role": identity hints, never trusted for authorization
      - "scope": the login portal that issued the token ("user" / "admin")
      - "iat" / "exp": issue and absolute expiry timestamps

    Args:
        data: Claims to encode (must include "sub").
        scope: Portal scope, selects the default lifetime.
        expires_delta: Optional override of the lifetime.
        now: Issue time; defaults to the current UTC time.

    Returns:
        An encoded JWT string.
    """
    now = now or utcnow()
    to_encode = data.copy()
    expire = now + (expires_delta if expires_delta is not None else token_lifetime(scope))
    to_encode.update({"scope": scope, "iat": now, "exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT access token.

    Raises:
        jose.ExpiredSignatureError: If the token's "exp" has passed.
        jose.JWTError: If the token is malformed or the signature is wrong.

    Returns:
        The decoded payload dictionary.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


# ---------------------------------------------------------------------------
# 3. One-time passwords
# ---------------------------------------------------------------------------

OTP_DIGITS = 6


def generate_otp() -> str:
    """Uniformly random 6-digit code, zero-padded ("004211" is valid)."""
    return f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"


def otp_expiry(now: datetime | None = None) -> datetime:
    return (now or utcnow()) + timedelta(minutes=settings.OTP_EXPIRE_MINUTES)


def hash_otp(code: str) -> str:
    return hmac.new(
        settings.SECRET_KEY.encode("utf-8"),
        code.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_otp(
    code: str,
    code_hash: str | None,
    expires_at: datetime | None,
    now: datetime | None = None,
) -> bool:
    """
    Check a submitted code against a stored digest and expiry.

    The code is valid strictly before its expiry instant.
    """
    if not code_hash or expires_at is None:
        return False
    now = now or utcnow()
    if ensure_utc(expires_at) <= now:
        return False
    return hmac.compare_digest(hash_otp(code), code_hash)
