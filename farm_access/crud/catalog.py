# farm_access/crud/catalog.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from farm_access.core.roles import normalize_role_name
from farm_access.models.permission import Permission
from farm_access.models.role import Role
from farm_access.models.user import User


async def get_role(db: AsyncSession, role_id: int) -> Optional[Role]:
    return await db.get(Role, role_id)


async def get_role_by_name(db: AsyncSession, name: str) -> Optional[Role]:
    stmt = select(Role).where(Role.name == normalize_role_name(name))
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_roles_by_names(db: AsyncSession, names: list[str]) -> dict[str, Role]:
    stmt = select(Role).where(Role.name.in_([normalize_role_name(n) for n in names]))
    return {r.name: r for r in (await db.execute(stmt)).scalars().all()}


async def get_permission(db: AsyncSession, permission_id: int) -> Optional[Permission]:
    return await db.get(Permission, permission_id)


async def get_user(db: AsyncSession, user_id: int, *, for_update: bool = False) -> Optional[User]:
    if for_update:
        return await db.get(User, user_id, with_for_update=True)
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    stmt = select(User).where(User.email == User.normalize_email(email)).limit(1)
    return (await db.execute(stmt)).scalar_one_or_none()
