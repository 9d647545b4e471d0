"""
Authentication router — login, registration, OTP flows, session lookups.

Public endpoints:
  POST /api/auth/login                    — storefront login (7 day token)
  POST /api/auth/register/send-otp        — start registration, email a code
  POST /api/auth/register/verify-otp      — confirm code, create the account
  POST /api/auth/send-otp                 — email a password-reset code
  POST /api/auth/verify-otp               — reset the password with the code
  POST /api/auth/verify-email/send-otp    — email a code to an unverified account
  POST /api/auth/verify-email/confirm     — mark that account verified

Session endpoints:
  GET  /api/auth/me                       — the current principal
  POST /api/auth/change-password          — change password (needs current one)

Logout is client-side: tokens are stateless and simply discarded.

Security audit notes:
  - Plaintext passwords and OTP codes exist only in memory during the
    request; they are never logged or echoed back.
  - No request body logging middleware is installed.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import get_db
from storefront.dependencies import get_current_user
from storefront.mailer import EmailRelay, get_email_relay
from storefront.models.user import User
from storefront.schemas.auth import (
    ChangePasswordRequest,
    EmailOTPRequest,
    EmailRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    OTPSentResponse,
    PasswordResetRequest,
    RegisterConfirmRequest,
    RegisterConfirmResponse,
    RegisterRequest,
)
from storefront.schemas.user import UserResponse, UserSummary
from storefront.services import auth_service, registration_service
from storefront.services.pending_registrations import (
    PendingRegistrationStore,
    get_pending_registrations,
)

router = APIRouter()


def client_info(request: Request) -> tuple[str | None, str | None]:
    """Source address and user agent, recorded in the login history."""
    ip = request.client.host if request.client else None
    return ip, request.headers.get("user-agent")


def login_response(user: User, token: str, expires_in: int) -> LoginResponse:
    return LoginResponse(
        token=token,
        expires_in=expires_in,
        user=UserSummary.model_validate(user),
        password_change_required=auth_service.requires_password_change(user),
    )


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Log in to the storefront",
)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate with email and password.

    Returns a JWT bearer token for the Authorization header of subsequent
    requests:

        Authorization: Bearer <token>

    - 400: missing fields or invalid credentials
    - 403: account deactivated, unverified, or locked
    """
    ip, user_agent = client_info(request)
    user, token, expires_in = await auth_service.login_user(
        db=db,
        email=body.email,
        password=body.password,
        ip=ip,
        user_agent=user_agent,
    )
    return login_response(user, token, expires_in)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

@router.post(
    "/register/send-otp",
    response_model=MessageResponse,
    summary="Start registration and email a confirmation code",
)
async def register_send_otp(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    relay: EmailRelay = Depends(get_email_relay),
    store: PendingRegistrationStore = Depends(get_pending_registrations),
):
    """
    The account is not created yet — only after the emailed code is confirmed.

    - **password**: must pass the password policy (every failed rule is listed)
    """
    await registration_service.request_registration(
        db=db,
        relay=relay,
        store=store,
        name=body.name,
        email=body.email,
        password=body.password,
        phone=body.phone,
    )
    return MessageResponse(
        message="OTP sent to your email. Please verify to complete registration."
    )


@router.post(
    "/register/verify-otp",
    response_model=RegisterConfirmResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Confirm registration code and create the account",
)
async def register_verify_otp(
    body: RegisterConfirmRequest,
    db: AsyncSession = Depends(get_db),
    store: PendingRegistrationStore = Depends(get_pending_registrations),
):
    user = await registration_service.confirm_registration(
        db=db,
        store=store,
        email=body.email,
        otp=body.otp,
    )
    return RegisterConfirmResponse(
        message="Registration complete! You can now log in.",
        user=UserResponse.model_validate(user),
    )


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------

@router.post(
    "/send-otp",
    response_model=OTPSentResponse,
    summary="Email a password-reset code",
)
async def send_reset_otp(
    body: EmailRequest,
    db: AsyncSession = Depends(get_db),
    relay: EmailRelay = Depends(get_email_relay),
):
    await auth_service.request_password_reset(db=db, relay=relay, email=body.email)
    return OTPSentResponse(message="OTP sent")


@router.post(
    "/verify-otp",
    response_model=MessageResponse,
    summary="Reset the password with an emailed code",
)
async def verify_reset_otp(
    body: PasswordResetRequest,
    db: AsyncSession = Depends(get_db),
):
    await auth_service.reset_password(
        db=db,
        email=body.email,
        otp=body.otp,
        new_password=body.new_password,
    )
    return MessageResponse(message="Password successfully reset")


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------

@router.post(
    "/verify-email/send-otp",
    response_model=MessageResponse,
    summary="Email a verification code to an unverified account",
)
async def send_verification_otp(
    body: EmailRequest,
    db: AsyncSession = Depends(get_db),
    relay: EmailRelay = Depends(get_email_relay),
):
    await auth_service.request_email_verification(db=db, relay=relay, email=body.email)
    return MessageResponse(message="OTP sent to your email.")


@router.post(
    "/verify-email/confirm",
    response_model=MessageResponse,
    summary="Confirm an email verification code",
)
async def confirm_verification_otp(
    body: EmailOTPRequest,
    db: AsyncSession = Depends(get_db),
):
    await auth_service.verify_email(db=db, email=body.email, otp=body.otp)
    return MessageResponse(message="Email verified. You can now log in.")


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get the current principal",
)
async def me(user: User = Depends(get_current_user)):
    """Always read from the database, never from the token's claims."""
    return user


@router.post(
    "/change-password",
    response_model=MessageResponse,
    summary="Change the current principal's password",
)
async def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await auth_service.change_password(
        db=db,
        user=user,
        current_password=body.current_password,
        new_password=body.new_password,
    )
    return MessageResponse(message="Password changed successfully")
