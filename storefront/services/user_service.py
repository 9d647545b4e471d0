"""
User service — profile edits and admin principal management.

Admin operations:
  - list / get principals
  - set role (promote / demote are shortcuts for admin / user)
  - ban / unban (flip `active`; the record and its history are kept)
  - delete (hard removal)

Banning does not revoke tokens that were already issued. Admin routes
re-check `active` on every request, and storefront clients poll the
profile's is_banned flag to drop a banned user's session.
"""

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.exceptions import InvalidRoleError, UserNotFoundError
from storefront.logging import SecurityLogger
from storefront.models.user import Role, User


async def update_profile(
    db: AsyncSession,
    user: User,
    name: str | None = None,
    phone: str | None = None,
) -> User:
    """Update display fields only. Email, role, and standing stay untouched."""
    if name is not None:
        user.name = name.strip()
    if phone is not None:
        user.phone = phone.strip()
    await db.flush()
    return user


async def list_users(
    db: AsyncSession,
    limit: int = 50,
    offset: int = 0,
) -> list[User]:
    """Newest principals first."""
    result = await db.execute(
        select(User)
        .order_by(User.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def count_users(db: AsyncSession) -> int:
    result = await db.execute(select(func.count()).select_from(User))
    return result.scalar_one()


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    """
    Raises:
        UserNotFoundError: No principal has this id.
    """
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise UserNotFoundError(user_id)
    return user


async def set_role(
    db: AsyncSession,
    admin: User,
    user_id: uuid.UUID,
    role: str,
) -> User:
    """
    Assign a role by its string value ("user" / "admin").

    Raises:
        InvalidRoleError: role is not a known Role value.
        UserNotFoundError: No principal has this id.
    """
    try:
        new_role = Role(role)
    except ValueError:
        raise InvalidRoleError(role)

    user = await get_user(db, user_id)
    user.role = new_role
    await db.flush()
    SecurityLogger.log_admin_action(
        admin_id=str(admin.id),
        action=f"set_role:{new_role.value}",
        target_user_id=str(user.id),
    )
    return user


async def set_active(
    db: AsyncSession,
    admin: User,
    user_id: uuid.UUID,
    active: bool,
) -> User:
    """Ban (active=False) or unban (active=True) a principal."""
    user = await get_user(db, user_id)
    user.active = active
    await db.flush()
    SecurityLogger.log_admin_action(
        admin_id=str(admin.id),
        action="unban" if active else "ban",
        target_user_id=str(user.id),
    )
    return user


async def delete_user(db: AsyncSession, admin: User, user_id: uuid.UUID) -> None:
    user = await get_user(db, user_id)
    await db.delete(user)
    await db.flush()
    SecurityLogger.log_admin_action(
        admin_id=str(admin.id),
        action="delete",
        target_user_id=str(user_id),
    )
