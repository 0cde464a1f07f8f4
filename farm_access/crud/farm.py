# farm_access/crud/farm.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from farm_access.models.farm import Farm


async def get_farm(db: AsyncSession, farm_id: int, *, for_update: bool = False) -> Optional[Farm]:
    stmt = select(Farm).where(Farm.id == farm_id)
    if for_update:
        stmt = stmt.with_for_update()
    return (await db.execute(stmt)).scalar_one_or_none()


async def count_owned_farms(db: AsyncSession, owner_id: int) -> int:
    stmt = select(func.count(Farm.id)).where(Farm.owner_id == owner_id)
    res = await db.execute(stmt)
    return int(res.scalar() or 0)
