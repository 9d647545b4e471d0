#!/usr/bin/env python3
"""
Provision the admin account. Run on the server.

Creates the admin if the email is unknown; otherwise promotes it and
reactivates, re-verifies, unlocks, and resets its password. The password
must pass the password policy.

Usage:
    ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD='...' python demo/seed_admin.py
"""
import asyncio
import os

from storefront.database import AsyncSessionLocal, Base, engine
from storefront.models.user import Role, User
from storefront.password_policy import validate_password
from storefront.security import hash_password
from storefront.services.auth_service import get_user_by_email, normalize_email


async def seed_admin():
    email = normalize_email(os.environ["ADMIN_EMAIL"])
    password = os.environ["ADMIN_PASSWORD"]
    validate_password(password)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as s:
        admin = await get_user_by_email(s, email)
        if admin is None:
            admin = User(name="Admin", email=email, phone="0000000000")
            s.add(admin)
            action = "created"
        else:
            action = "updated"
        admin.role = Role.ADMIN
        admin.is_verified = True
        admin.active = True
        admin.failed_login_attempts = 0
        admin.account_locked = False
        admin.lock_until = None
        admin.set_password_hash(hash_password(password))
        await s.commit()
        print(f"Admin user {action}: {email}")
    await engine.dispose()

asyncio.run(seed_admin())
