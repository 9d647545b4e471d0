"""
Password policy — rejects weak secrets before they are hashed.

Applied on registration, password change, and password reset. Unlike a
first-failure check, validate_password() evaluates every rule and reports all
failures, so the client can show the complete list in one round trip.

Rules:
  - 8 to 100 characters
  - at least one uppercase letter, lowercase letter, digit, and symbol
  - no whitespace
  - not a known-weak literal
  - not a common guessable shape ("Password123!", "qwerty...", "admin...")
  - no run of 3+ identical characters ("aaa", "111")
"""

import re
from datetime import datetime, timedelta

from storefront.clock import ensure_utc, utcnow
from storefront.config import settings
from storefront.exceptions import PasswordPolicyError


MIN_LENGTH = 8
MAX_LENGTH = 100

BLACKLIST = frozenset({
    "Password123!",
    "Admin123!",
    "Welcome123!",
    "Qwerty123!",
    "Letmein123!",
})

COMMON_PATTERNS = (
    re.compile(r"^[A-Z][a-z]+\d{2,4}[!@#$%^&*]$"),   # "Password123!"
    re.compile(r"^[A-Z][a-z]{7,}[1-9]$"),            # "Password1"
    re.compile(r"^1234"),
    re.compile(r"^qwerty"),
    re.compile(r"^admin", re.IGNORECASE),
    re.compile(r"^pass", re.IGNORECASE),
)

REPEATED_CHARS = re.compile(r"(.)\1{2,}")


def _has_symbol(password: str) -> bool:
    return any(not ch.isalnum() and not ch.isspace() for ch in password)


def password_errors(password: str) -> list[str]:
    """Return a message for every rule the password breaks (empty if it is fine)."""
    errors = []

    if len(password) < MIN_LENGTH:
        errors.append(f"Password must be at least {MIN_LENGTH} characters long")
    if len(password) > MAX_LENGTH:
        errors.append(f"Password must be less than {MAX_LENGTH} characters")
    if not any(ch.isupper() for ch in password):
        errors.append("Password must contain at least one uppercase letter")
    if not any(ch.islower() for ch in password):
        errors.append("Password must contain at least one lowercase letter")
    if not any(ch.isdigit() for ch in password):
        errors.append("Password must contain at least one number")
    if not _has_symbol(password):
        errors.append("Password must contain at least one symbol")
    if any(ch.isspace() for ch in password):
        errors.append("Password must not contain spaces")
    if password in BLACKLIST:
        errors.append("Password is too common")
    if any(pattern.search(password) for pattern in COMMON_PATTERNS):
        errors.append("Password matches a common pattern and would be easy to guess")
    if REPEATED_CHARS.search(password):
        errors.append("Password contains too many repeated characters")

    return errors


def validate_password(password: str) -> None:
    """
    Raise PasswordPolicyError listing every failed rule.

    Raises:
        PasswordPolicyError: If any rule fails.
    """
    errors = password_errors(password)
    if errors:
        raise PasswordPolicyError(errors)


def password_needs_change(
    last_password_change: datetime | None,
    now: datetime | None = None,
) -> bool:
    """True when the password is older than PASSWORD_MAX_AGE_DAYS or its age is unknown."""
    if last_password_change is None:
        return True
    now = now or utcnow()
    max_age = timedelta(days=settings.PASSWORD_MAX_AGE_DAYS)
    return now - ensure_utc(last_password_change) > max_age
