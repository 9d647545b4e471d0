"""
Custom exception classes and FastAPI exception handlers.

Why custom exceptions?
  The service layer raises domain errors (like AccountLockedError) without
  importing HTTP concepts such as HTTPException. The handlers registered here
  translate them into consistent JSON responses:

      {"detail": "...", "error_type": "..."}

  Password policy failures additionally carry an "errors" list with every
  rule that failed, so the client can show all problems at once.

Exception hierarchy:
    StorefrontAPIError (base)
    ├── ValidationError (400)         — malformed or policy-violating input
    │   ├── PasswordPolicyError
    │   ├── InvalidOTPError
    │   ├── DuplicateEmailError
    │   ├── AlreadyVerifiedError
    │   └── InvalidRoleError
    ├── AuthenticationError (401)     — bad credentials, bad/expired token
    │   ├── InvalidCredentialsError
    │   │   └── UnknownPrincipalError
    │   ├── MissingTokenError
    │   ├── InvalidTokenError
    │   └── ExpiredTokenError
    ├── AuthorizationError (403)      — valid identity, insufficient standing
    │   ├── AccountDeactivatedError
    │   ├── AccountUnverifiedError
    │   ├── AccountLockedError
    │   └── AdminRequiredError
    ├── NotFoundError (404)
    │   └── UserNotFoundError
    └── DependencyError (500)         — record store or email relay failed
        └── EmailDeliveryError

Authentication messages are deliberately generic ("Invalid email or
password") so a caller cannot learn whether an account exists.
"""

import uuid

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger("storefront.errors")


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class StorefrontAPIError(Exception):
    """Base exception for all storefront domain errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "internal_error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Validation (400)
# ---------------------------------------------------------------------------

class ValidationError(StorefrontAPIError):
    """Input was malformed or violated a policy; resubmit corrected data."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "validation_error"


class PasswordPolicyError(ValidationError):
    """
    Raised when a password fails one or more policy rules.

    Attributes:
        errors: Human-readable message for every rule that failed.
    """

    error_type = "weak_password"

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Password does not meet requirements")


class InvalidOTPError(ValidationError):
    """Raised when a one-time password is wrong, expired, or was never issued."""

    error_type = "invalid_otp"

    def __init__(self):
        super().__init__("Invalid or expired OTP")


class DuplicateEmailError(ValidationError):
    """Raised when registering an email that already belongs to a principal."""

    error_type = "duplicate_email"

    def __init__(self, email: str):
        self.email = email
        super().__init__("User already exists")


class AlreadyVerifiedError(ValidationError):
    """Raised when requesting email verification for a verified principal."""

    error_type = "already_verified"

    def __init__(self):
        super().__init__("Email is already verified")


class InvalidRoleError(ValidationError):
    """Raised when an admin assigns a role that does not exist."""

    error_type = "invalid_role"

    def __init__(self, role: str):
        self.role = role
        super().__init__("Invalid role")


# ---------------------------------------------------------------------------
# Authentication (401)
# ---------------------------------------------------------------------------

class AuthenticationError(StorefrontAPIError):
    """The caller could not be identified; re-authenticating may fix it."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "authentication_error"


class InvalidCredentialsError(AuthenticationError):
    """
    Raised when login credentials are incorrect.

    The user login portal answers this with 400 (storefront clients expect
    it), the admin portal with 401, so the status is set per instance.
    """

    error_type = "invalid_credentials"

    def __init__(self, status_code: int = status.HTTP_401_UNAUTHORIZED):
        self.status_code = status_code
        super().__init__("Invalid email or password")


class UnknownPrincipalError(InvalidCredentialsError):
    """No principal has this email. Rendered exactly like a wrong password."""


class MissingTokenError(AuthenticationError):
    error_type = "missing_token"

    def __init__(self):
        super().__init__("Missing authentication token")


class InvalidTokenError(AuthenticationError):
    error_type = "invalid_token"

    def __init__(self):
        super().__init__("Invalid token")


class ExpiredTokenError(AuthenticationError):
    error_type = "expired_token"

    def __init__(self):
        super().__init__("Token has expired")


# ---------------------------------------------------------------------------
# Authorization (403)
# ---------------------------------------------------------------------------

class AuthorizationError(StorefrontAPIError):
    """The caller is known but lacks the role or standing for this action."""

    status_code = status.HTTP_403_FORBIDDEN
    error_type = "authorization_error"


class AccountDeactivatedError(AuthorizationError):
    error_type = "account_deactivated"

    def __init__(self):
        super().__init__("This account has been deactivated. Please contact support.")


class AccountUnverifiedError(AuthorizationError):
    error_type = "account_unverified"

    def __init__(self):
        super().__init__("Please verify your email before logging in.")


class AccountLockedError(AuthorizationError):
    """
    Raised when a login is attempted while the lockout window is open.

    Attributes:
        lock_until: When the lock lapses (UTC).
    """

    error_type = "account_locked"

    def __init__(self, lock_until):
        self.lock_until = lock_until
        super().__init__(
            "Account is locked due to repeated failed login attempts. "
            "Please try again later."
        )


class AdminRequiredError(AuthorizationError):
    error_type = "admin_required"

    def __init__(self):
        super().__init__("Admin access required")


# ---------------------------------------------------------------------------
# Not found (404)
# ---------------------------------------------------------------------------

class NotFoundError(StorefrontAPIError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"


class UserNotFoundError(NotFoundError):
    """Raised when a referenced principal does not exist."""

    error_type = "user_not_found"

    def __init__(self, user_id: uuid.UUID | None = None):
        self.user_id = user_id
        super().__init__("User not found")


# ---------------------------------------------------------------------------
# Dependencies (5xx)
# ---------------------------------------------------------------------------

class DependencyError(StorefrontAPIError):
    """A collaborator (record store, email relay) failed. Not retried here."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = "dependency_error"


class EmailDeliveryError(DependencyError):
    error_type = "email_delivery_failed"

    def __init__(self):
        super().__init__("Failed to send email. Please try again later.")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Every StorefrontAPIError subclass carries its own status code and
    error_type, so a single handler covers the whole hierarchy; the
    password-policy and request-validation handlers add an "errors" list.

    This is called once during app startup in main.py.
    """

    @app.exception_handler(StorefrontAPIError)
    async def storefront_error_handler(
        request: Request, exc: StorefrontAPIError
    ) -> JSONResponse:
        headers = None
        if exc.status_code == status.HTTP_401_UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}
        if exc.status_code >= 500:
            logger.error(
                "Dependency failure",
                path=request.url.path,
                error_type=exc.error_type,
                detail=exc.detail,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_type": exc.error_type},
            headers=headers,
        )

    @app.exception_handler(PasswordPolicyError)
    async def password_policy_handler(
        request: Request, exc: PasswordPolicyError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "error_type": exc.error_type,
                "errors": exc.errors,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Missing or malformed fields are a plain 400 for storefront clients
        errors = [
            f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "detail": "Validation failed",
                "error_type": "validation_error",
                "errors": errors,
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        # Stack traces stay in the server log, never in the response body
        logger.exception("Unhandled error", path=request.url.path, method=request.method)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error", "error_type": "internal_error"},
        )
