"""
FastAPI dependencies for authentication and authorization.

Dependencies are reusable functions that FastAPI injects into route handlers.
Two composable checks guard every protected route:

  get_current_user (JWT -> current User)          [valid session]
      └── require_admin (User -> User)            [admin role + active + admin token]

The token is treated purely as proof of identity and expiry. get_current_user
reloads the principal from the database on every request, and require_admin
checks the role and `active` flag of that fresh record — never the role
embedded in the token. A demoted or banned admin therefore loses admin
routes immediately, even though their token stays valid until it expires.

Admin routes also require a token issued by the admin portal (scope
"admin", one hour). The seven-day storefront token of an admin identifies
the same principal but does not open the admin panel.

Regular routes do not reject banned users: they may still read their own
profile, whose is_banned flag the storefront polls to end the session.
"""

import uuid

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import get_db
from storefront.exceptions import (
    AccountDeactivatedError,
    AdminRequiredError,
    ExpiredTokenError,
    InvalidTokenError,
    MissingTokenError,
)
from storefront.logging import SecurityLogger
from storefront.models.user import Role, User
from storefront.security import ADMIN_SCOPE, decode_access_token
from storefront.services.auth_service import get_user_by_id


# OAuth2PasswordBearer reads "Authorization: Bearer <token>". auto_error is
# off so a missing token raises our own MissingTokenError.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


async def get_current_user(
    request: Request,
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Validate the session token and return the current principal.

    Checks, in order: token present, signature valid, not expired, principal
    still exists.

    Raises:
        MissingTokenError: No bearer token on the request.
        InvalidTokenError: Bad signature, malformed token, or unknown principal.
        ExpiredTokenError: The token's expiry has passed.
    """
    if not token:
        SecurityLogger.log_unauthorized_access(request.url.path, request.method, "missing_token")
        raise MissingTokenError()

    try:
        payload = decode_access_token(token)
    except ExpiredSignatureError:
        SecurityLogger.log_unauthorized_access(request.url.path, request.method, "expired_token")
        raise ExpiredTokenError()
    except JWTError:
        SecurityLogger.log_unauthorized_access(request.url.path, request.method, "invalid_token")
        raise InvalidTokenError()

    try:
        user_id = uuid.UUID(payload.get("sub") or "")
    except ValueError:
        raise InvalidTokenError()

    user = await get_user_by_id(db, user_id)
    if user is None:
        SecurityLogger.log_unauthorized_access(request.url.path, request.method, "unknown_principal")
        raise InvalidTokenError()

    request.state.user_id = str(user.id)
    request.state.token_scope = payload.get("scope")
    return user


async def require_admin(
    request: Request,
    user: User = Depends(get_current_user),
) -> User:
    """
    Require an active admin holding an admin-portal token.

    Raises:
        AccountDeactivatedError: The admin was banned after the token was issued.
        AdminRequiredError: The principal is not (or no longer) an admin, or the
            token was issued by the storefront login.
    """
    if not user.active:
        SecurityLogger.log_unauthorized_access(
            request.url.path, request.method, "deactivated", user_id=str(user.id)
        )
        raise AccountDeactivatedError()
    if user.role != Role.ADMIN:
        SecurityLogger.log_unauthorized_access(
            request.url.path, request.method, "not_admin", user_id=str(user.id)
        )
        raise AdminRequiredError()
    if getattr(request.state, "token_scope", None) != ADMIN_SCOPE:
        SecurityLogger.log_unauthorized_access(
            request.url.path, request.method, "not_admin_session", user_id=str(user.id)
        )
        raise AdminRequiredError()
    return user
