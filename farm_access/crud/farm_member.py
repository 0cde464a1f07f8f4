# farm_access/crud/farm_member.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from farm_access.models.farm_member import FarmMember


async def get_membership(db: AsyncSession, user_id: int, farm_id: int) -> Optional[FarmMember]:
    """Membership lookup by its (user, farm) key."""
    stmt = select(FarmMember).where(
        FarmMember.user_id == user_id,
        FarmMember.farm_id == farm_id,
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def count_members(db: AsyncSession, farm_id: int) -> int:
    stmt = select(func.count(FarmMember.id)).where(FarmMember.farm_id == farm_id)
    res = await db.execute(stmt)
    return int(res.scalar() or 0)
