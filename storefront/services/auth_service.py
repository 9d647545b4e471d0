"""
Authentication service — login, password reset, and email verification.

This module contains the credential and session-trust logic, separated from
HTTP concerns. Routers call these functions and translate the results into
responses; domain errors are mapped to status codes by the handlers in
storefront.exceptions.

Login flow (both portals):
  1. Look up the principal by normalised email
  2. Refuse deactivated, then unverified, then currently locked principals
  3. Compare the password; a mismatch counts toward the lockout
  4. Record the attempt in the login history and issue a JWT

  A lock is checked before the password, so a locked account never reaches
  the hash comparison and refused attempts do not extend the lock.

Password reset flow:
  1. POST /api/auth/send-otp   — email a 6-digit code, then store its digest
  2. POST /api/auth/verify-otp — code + new password; the code is single use

Security notes:
  - Unknown email and wrong password produce the same message
  - OTPs are stored only as HMAC digests and accepted strictly before expiry
  - A reset code is burned after OTP_MAX_ATTEMPTS wrong guesses
  - A code is persisted only after the email relay confirmed delivery, so a
    failed send never leaves an undeliverable code behind
"""

import uuid
from datetime import datetime

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.clock import utcnow
from storefront.config import settings
from storefront.exceptions import (
    AccountDeactivatedError,
    AccountLockedError,
    AccountUnverifiedError,
    AdminRequiredError,
    AlreadyVerifiedError,
    EmailDeliveryError,
    InvalidCredentialsError,
    InvalidOTPError,
    UnknownPrincipalError,
    UserNotFoundError,
)
from storefront.logging import SecurityLogger
from storefront.mailer import EmailRelay, otp_email
from storefront.models.user import Role, User
from storefront.password_policy import password_needs_change, validate_password
from storefront.security import (
    ADMIN_SCOPE,
    USER_SCOPE,
    create_access_token,
    generate_otp,
    hash_otp,
    hash_password,
    otp_expiry,
    pwd_context,
    token_lifetime,
    verify_otp,
    verify_password,
)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def get_user_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

async def verify_credentials(
    db: AsyncSession,
    email: str,
    password: str,
    ip: str | None = None,
    user_agent: str | None = None,
    portal: str = USER_SCOPE,
    invalid_status: int = status.HTTP_401_UNAUTHORIZED,
    now: datetime | None = None,
) -> User:
    """
    Decide whether (email, password) identifies a usable principal.

    Checks run in order and stop at the first failure:
    existence, active, verified, lock, password.

    Args:
        db: Database session.
        email: Submitted email (normalised here).
        password: Submitted plaintext password.
        ip / user_agent: Recorded in the login history.
        portal: "user" or "admin", only used for logging.
        invalid_status: HTTP status for bad credentials (400 or 401).
        now: Evaluation time; defaults to the current UTC time.

    Returns:
        The authenticated User, with the success already recorded.

    Raises:
        UnknownPrincipalError: No principal has this email.
        AccountDeactivatedError: The principal was banned.
        AccountUnverifiedError: The email was never confirmed.
        AccountLockedError: The lockout window is still open.
        InvalidCredentialsError: The password does not match.
    """
    now = now or utcnow()
    email = normalize_email(email)
    user = await get_user_by_email(db, email)

    def log_failure(reason: str) -> None:
        SecurityLogger.log_login_attempt(
            email=email,
            success=False,
            portal=portal,
            ip_address=ip,
            user_agent=user_agent,
            failure_reason=reason,
        )

    if user is None:
        # Burn a hash so response time doesn't reveal unknown emails
        pwd_context.dummy_verify()
        log_failure("unknown_email")
        raise UnknownPrincipalError(status_code=invalid_status)

    if not user.active:
        log_failure("deactivated")
        raise AccountDeactivatedError()

    if not user.is_verified:
        log_failure("unverified")
        raise AccountUnverifiedError()

    if user.is_locked(now):
        user.record_locked_attempt(ip, user_agent, now)
        await db.commit()
        log_failure("locked")
        raise AccountLockedError(user.lock_until)

    if not verify_password(password, user.hashed_password):
        user.record_login_attempt(False, ip, user_agent, now)
        # Persist the counter and audit entry before refusing
        await db.commit()
        log_failure("bad_password")
        if user.is_locked(now):
            SecurityLogger.log_account_locked(
                user_id=str(user.id),
                email=user.email,
                lock_until=user.lock_until.isoformat(),
            )
        raise InvalidCredentialsError(status_code=invalid_status)

    user.record_login_attempt(True, ip, user_agent, now)
    await db.flush()
    SecurityLogger.log_login_attempt(
        email=email,
        success=True,
        portal=portal,
        ip_address=ip,
        user_agent=user_agent,
    )
    return user


def issue_token(user: User, scope: str, now: datetime | None = None) -> tuple[str, int]:
    """
    Create a session token for an authenticated principal.

    Returns:
        Tuple of (JWT string, lifetime in seconds).
    """
    lifetime = token_lifetime(scope)
    token = create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role.value},
        scope=scope,
        now=now,
    )
    return token, int(lifetime.total_seconds())


async def login_user(
    db: AsyncSession,
    email: str,
    password: str,
    ip: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> tuple[User, str, int]:
    """
    Storefront login. Bad credentials are a 400, the token lasts 7 days.

    Returns:
        Tuple of (User, JWT string, lifetime in seconds).
    """
    user = await verify_credentials(
        db, email, password, ip, user_agent,
        portal=USER_SCOPE,
        invalid_status=status.HTTP_400_BAD_REQUEST,
        now=now,
    )
    token, expires_in = issue_token(user, USER_SCOPE, now)
    return user, token, expires_in


async def login_admin(
    db: AsyncSession,
    email: str,
    password: str,
    ip: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> tuple[User, str, int]:
    """
    Admin-panel login. Bad credentials are a 401, the token lasts 1 hour.

    The role is checked only after the password matched, so the admin portal
    does not reveal which emails belong to admins.

    Raises:
        AdminRequiredError: Credentials are valid but the principal is not an admin.
    """
    user = await verify_credentials(
        db, email, password, ip, user_agent,
        portal=ADMIN_SCOPE,
        invalid_status=status.HTTP_401_UNAUTHORIZED,
        now=now,
    )
    if user.role != Role.ADMIN:
        raise AdminRequiredError()
    token, expires_in = issue_token(user, ADMIN_SCOPE, now)
    return user, token, expires_in


def requires_password_change(user: User, now: datetime | None = None) -> bool:
    return password_needs_change(user.last_password_change, now)


# ---------------------------------------------------------------------------
# Password change / reset
# ---------------------------------------------------------------------------

async def change_password(
    db: AsyncSession,
    user: User,
    current_password: str,
    new_password: str,
    now: datetime | None = None,
) -> None:
    """
    Change the password of an authenticated principal.

    Raises:
        InvalidCredentialsError: current_password is wrong.
        PasswordPolicyError: new_password is too weak.
    """
    if not verify_password(current_password, user.hashed_password):
        raise InvalidCredentialsError()
    validate_password(new_password)
    user.set_password_hash(hash_password(new_password), now)
    await db.flush()
    SecurityLogger.log_password_changed(user_id=str(user.id), via="change")


async def _send_otp(relay: EmailRelay, email: str, code: str, purpose: str) -> None:
    subject, body = otp_email(code, purpose)
    if not await relay.send(email, subject, body):
        raise EmailDeliveryError()
    SecurityLogger.log_otp_issued(email=email, purpose=purpose)


async def request_password_reset(
    db: AsyncSession,
    relay: EmailRelay,
    email: str,
    now: datetime | None = None,
) -> None:
    """
    Email a password-reset code and store its digest on the principal.

    A new request replaces any earlier code and resets its attempt counter.

    Raises:
        UserNotFoundError: No principal has this email.
        EmailDeliveryError: The relay did not accept the message; nothing is stored.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        raise UserNotFoundError()

    code = generate_otp()
    await _send_otp(relay, user.email, code, "password reset")

    user.reset_otp_hash = hash_otp(code)
    user.reset_otp_expires = otp_expiry(now)
    user.reset_otp_attempts = 0
    await db.flush()


async def reset_password(
    db: AsyncSession,
    email: str,
    otp: str,
    new_password: str,
    now: datetime | None = None,
) -> None:
    """
    Redeem a password-reset code.

    The new password is checked against the policy first, so a weak password
    does not cost an attempt. On success the code is cleared.

    Raises:
        PasswordPolicyError: new_password is too weak.
        InvalidOTPError: Unknown email, wrong/expired/burned code.
    """
    validate_password(new_password)
    now = now or utcnow()

    user = await get_user_by_email(db, email)
    if user is None:
        raise InvalidOTPError()

    if user.reset_otp_attempts >= settings.OTP_MAX_ATTEMPTS:
        SecurityLogger.log_otp_rejected(email=user.email, purpose="password reset", reason="attempts_exhausted")
        raise InvalidOTPError()

    if not verify_otp(otp, user.reset_otp_hash, user.reset_otp_expires, now):
        if user.reset_otp_hash:
            user.reset_otp_attempts += 1
            if user.reset_otp_attempts >= settings.OTP_MAX_ATTEMPTS:
                user.reset_otp_hash = None
                user.reset_otp_expires = None
            await db.commit()
        SecurityLogger.log_otp_rejected(email=user.email, purpose="password reset", reason="mismatch_or_expired")
        raise InvalidOTPError()

    user.set_password_hash(hash_password(new_password), now)
    user.reset_otp_hash = None
    user.reset_otp_expires = None
    user.reset_otp_attempts = 0
    await db.flush()
    SecurityLogger.log_password_changed(user_id=str(user.id), via="reset")


# ---------------------------------------------------------------------------
# Email verification of existing principals
# ---------------------------------------------------------------------------

async def request_email_verification(
    db: AsyncSession,
    relay: EmailRelay,
    email: str,
    now: datetime | None = None,
) -> None:
    """
    Email a verification code to a principal that exists but is unverified
    (admin- or seed-created accounts).

    Raises:
        UserNotFoundError: No principal has this email.
        AlreadyVerifiedError: Nothing to verify.
        EmailDeliveryError: The relay did not accept the message.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        raise UserNotFoundError()
    if user.is_verified:
        raise AlreadyVerifiedError()

    code = generate_otp()
    await _send_otp(relay, user.email, code, "email verification")

    user.register_otp_hash = hash_otp(code)
    user.register_otp_expires = otp_expiry(now)
    user.register_otp_attempts = 0
    await db.flush()


async def verify_email(
    db: AsyncSession,
    email: str,
    otp: str,
    now: datetime | None = None,
) -> User:
    """
    Redeem an email-verification code and mark the principal verified.

    Like the reset code, a verification code is burned after
    OTP_MAX_ATTEMPTS wrong guesses.

    Raises:
        InvalidOTPError: Unknown email, wrong/expired/burned code.
    """
    now = now or utcnow()
    user = await get_user_by_email(db, email)
    if user is None:
        SecurityLogger.log_otp_rejected(email=normalize_email(email), purpose="email verification", reason="unknown_email")
        raise InvalidOTPError()

    if user.register_otp_attempts >= settings.OTP_MAX_ATTEMPTS:
        SecurityLogger.log_otp_rejected(email=user.email, purpose="email verification", reason="attempts_exhausted")
        raise InvalidOTPError()

    if not verify_otp(otp, user.register_otp_hash, user.register_otp_expires, now):
        if user.register_otp_hash:
            user.register_otp_attempts += 1
            if user.register_otp_attempts >= settings.OTP_MAX_ATTEMPTS:
                user.register_otp_hash = None
                user.register_otp_expires = None
            await db.commit()
        SecurityLogger.log_otp_rejected(email=user.email, purpose="email verification", reason="mismatch_or_expired")
        raise InvalidOTPError()

    user.is_verified = True
    user.register_otp_hash = None
    user.register_otp_expires = None
    user.register_otp_attempts = 0
    await db.flush()
    return user
