"""
Registration service — two-phase signup confirmed by an emailed OTP.

Signup flow:
  1. request_registration: validate the password against the policy, hash
     it, email a 6-digit code, and park the submission in the pending store
  2. confirm_registration: check the code against the pending entry, then
     create the principal with is_verified=True

Nothing is written to the database until step 2 succeeds. A wrong or late
code leaves the pending entry untouched; it disappears when it expires or
when the same email submits the form again.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.clock import utcnow
from storefront.exceptions import DuplicateEmailError, EmailDeliveryError, InvalidOTPError
from storefront.logging import SecurityLogger
from storefront.mailer import EmailRelay, otp_email
from storefront.models.user import Role, User
from storefront.password_policy import validate_password
from storefront.security import generate_otp, hash_otp, hash_password, verify_otp
from storefront.services.auth_service import get_user_by_email, normalize_email
from storefront.services.pending_registrations import (
    PendingRegistration,
    PendingRegistrationStore,
)


async def request_registration(
    db: AsyncSession,
    relay: EmailRelay,
    store: PendingRegistrationStore,
    name: str,
    email: str,
    password: str,
    phone: str,
    now: datetime | None = None,
) -> None:
    """
    Start a registration and email its confirmation code.

    Raises:
        DuplicateEmailError: A principal with this email already exists.
        PasswordPolicyError: The password is too weak.
        EmailDeliveryError: The code could not be sent; nothing is stored.
    """
    now = now or utcnow()
    email = normalize_email(email)

    if await get_user_by_email(db, email) is not None:
        raise DuplicateEmailError(email)
    validate_password(password)

    code = generate_otp()
    subject, body = otp_email(code, "registration")
    if not await relay.send(email, subject, body):
        raise EmailDeliveryError()

    store.put(
        PendingRegistration(
            name=name.strip(),
            email=email,
            phone=phone.strip(),
            hashed_password=hash_password(password),
            otp_hash=hash_otp(code),
            expires_at=now + store.ttl,
        ),
        now,
    )
    SecurityLogger.log_otp_issued(email=email, purpose="registration")


async def confirm_registration(
    db: AsyncSession,
    store: PendingRegistrationStore,
    email: str,
    otp: str,
    now: datetime | None = None,
) -> User:
    """
    Finish a registration and create the verified principal.

    Raises:
        InvalidOTPError: No live pending entry, or the code does not match.
        DuplicateEmailError: The email was taken while the code was pending.
    """
    now = now or utcnow()
    email = normalize_email(email)

    pending = store.get(email, now)
    if pending is None or not verify_otp(otp, pending.otp_hash, pending.expires_at, now):
        SecurityLogger.log_otp_rejected(email=email, purpose="registration", reason="mismatch_or_expired")
        raise InvalidOTPError()

    if await get_user_by_email(db, email) is not None:
        store.discard(email)
        raise DuplicateEmailError(email)

    user = User(
        name=pending.name,
        email=pending.email,
        phone=pending.phone,
        role=Role.USER,
        is_verified=True,
    )
    user.set_password_hash(pending.hashed_password, now)
    db.add(user)
    await db.flush()

    store.discard(email)
    SecurityLogger.log_registration_completed(user_id=str(user.id), email=user.email)
    return user
