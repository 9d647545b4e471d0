"""
Admin router — admin login and principal management.

Every endpoint except /login requires an active ADMIN, checked against the
current database record on each request (see require_admin).

Endpoints:
  POST   /api/admin/login                 — admin-panel login (1 hour token)
  GET    /api/admin/users                 — list principals (X-Total-Count header)
  GET    /api/admin/users/{user_id}       — one principal
  PUT    /api/admin/users/{user_id}/role  — set role to "user" or "admin"
  PUT    /api/admin/users/{user_id}/promote
  PUT    /api/admin/users/{user_id}/demote
  PUT    /api/admin/users/{user_id}/ban
  PUT    /api/admin/users/{user_id}/unban
  DELETE /api/admin/users/{user_id}       — hard delete
"""

import uuid

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import get_db
from storefront.dependencies import require_admin
from storefront.models.user import Role, User
from storefront.routers.auth import client_info, login_response
from storefront.schemas.auth import LoginRequest, LoginResponse, MessageResponse
from storefront.schemas.user import RoleUpdateRequest, UserMessageResponse, UserResponse
from storefront.services import auth_service, user_service

router = APIRouter()


def updated(message: str, user: User) -> UserMessageResponse:
    return UserMessageResponse(message=message, user=UserResponse.model_validate(user))


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Log in to the admin panel",
)
async def admin_login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """
    - 401: invalid credentials
    - 403: not an admin, deactivated, unverified, or locked
    """
    ip, user_agent = client_info(request)
    user, token, expires_in = await auth_service.login_admin(
        db=db,
        email=body.email,
        password=body.password,
        ip=ip,
        user_agent=user_agent,
    )
    return login_response(user, token, expires_in)


# ---------------------------------------------------------------------------
# Principal management
# ---------------------------------------------------------------------------

@router.get(
    "/users",
    response_model=list[UserResponse],
    summary="[Admin] List users",
)
async def admin_list_users(
    response: Response,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    response.headers["X-Total-Count"] = str(await user_service.count_users(db))
    return await user_service.list_users(db, limit=limit, offset=offset)


@router.get(
    "/users/{user_id}",
    response_model=UserResponse,
    summary="[Admin] Get a user",
)
async def admin_get_user(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_user(db, user_id)


@router.put(
    "/users/{user_id}/role",
    response_model=UserMessageResponse,
    summary="[Admin] Set a user's role",
)
async def admin_set_role(
    user_id: uuid.UUID,
    body: RoleUpdateRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.set_role(db, admin, user_id, body.role)
    return updated("User role updated", user)


@router.put(
    "/users/{user_id}/promote",
    response_model=UserMessageResponse,
    summary="[Admin] Promote a user to admin",
)
async def admin_promote(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.set_role(db, admin, user_id, Role.ADMIN.value)
    return updated("User promoted to admin", user)


@router.put(
    "/users/{user_id}/demote",
    response_model=UserMessageResponse,
    summary="[Admin] Demote an admin to user",
)
async def admin_demote(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.set_role(db, admin, user_id, Role.USER.value)
    return updated("User demoted to user", user)


@router.put(
    "/users/{user_id}/ban",
    response_model=UserMessageResponse,
    summary="[Admin] Ban a user",
)
async def admin_ban(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.set_active(db, admin, user_id, active=False)
    return updated("User banned", user)


@router.put(
    "/users/{user_id}/unban",
    response_model=UserMessageResponse,
    summary="[Admin] Unban a user",
)
async def admin_unban(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.set_active(db, admin, user_id, active=True)
    return updated("User unbanned", user)


@router.delete(
    "/users/{user_id}",
    response_model=MessageResponse,
    summary="[Admin] Delete a user",
)
async def admin_delete_user(
    user_id: uuid.UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await user_service.delete_user(db, admin, user_id)
    return MessageResponse(message="User deleted")
