"""
Users router — the current principal's own profile.

Endpoints:
  GET /api/users/profile  — profile including is_banned
  PUT /api/users/profile  — change name and/or phone

Banned users can still call these: the storefront reads is_banned from
GET /api/users/profile to end their session client-side.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.database import get_db
from storefront.dependencies import get_current_user
from storefront.models.user import User
from storefront.schemas.user import ProfileUpdateRequest, UserMessageResponse, UserResponse
from storefront.services import user_service

router = APIRouter()


@router.get(
    "/profile",
    response_model=UserResponse,
    summary="Get my profile",
)
async def get_profile(user: User = Depends(get_current_user)):
    return user


@router.put(
    "/profile",
    response_model=UserMessageResponse,
    summary="Update my profile",
)
async def update_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Only name and phone can change. Email is the login identifier and role
    and standing are admin-controlled, so those fields are ignored here.
    """
    user = await user_service.update_profile(db, user, name=body.name, phone=body.phone)
    return UserMessageResponse(
        message="Profile updated successfully",
        user=UserResponse.model_validate(user),
    )
