# farm_access/core/farms.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from farm_access.auth.permissions import DEFAULT_ROLE_BINDINGS
from farm_access.core.clock import utcnow
from farm_access.core.config import settings
from farm_access.core.errors import ForbiddenError, NotFoundError
from farm_access.core.role_bindings import add_default_bindings
from farm_access.core.roles import FarmRole
from farm_access.crud import catalog as catalog_crud
from farm_access.crud import farm as farm_crud
from farm_access.crud import farm_member as member_crud
from farm_access.models.equipment import Equipment
from farm_access.models.farm import Farm
from farm_access.models.farm_invitation import FarmInvitation
from farm_access.models.farm_member import FarmMember
from farm_access.models.farm_role_permission import FarmRolePermission
from farm_access.models.field import Field
from farm_access.models.season import Season
from farm_access.models.task import Task, TaskParticipant

logger = logging.getLogger(__name__)

MIN_FARM_NAME_LENGTH = 3
DEFAULT_SEASON_COUNT = 3


@dataclass(frozen=True)
class FarmDetails:
    id: int
    name: str
    owner_id: int
    members_count: int
    fields_count: int
    equipment_count: int
    tasks_count: int


def default_seasons(today: Optional[date] = None, count: int = DEFAULT_SEASON_COUNT) -> list[tuple[str, date, date]]:
    """
    Agricultural years run 1 September to 31 August. Starts with the year that
    contains `today`.
    """
    today = today or utcnow().date()
    first = today.year if today.month >= 9 else today.year - 1
    return [
        (f"{y}-{y + 1}", date(y, 9, 1), date(y + 1, 8, 31))
        for y in range(first, first + count)
    ]


async def create_farm(db: AsyncSession, *, owner_id: int, name: str) -> Farm:
    """
    Farm row, owner membership, default bindings and seasons are written in
    one transaction.
    """
    # Owner row lock serializes concurrent creates by the same owner around the quota count.
    if await catalog_crud.get_user(db, owner_id, for_update=True) is None:
        raise NotFoundError("User not found")

    owned = await farm_crud.count_owned_farms(db, owner_id)
    if owned >= settings.MAX_FARMS_PER_OWNER:
        raise ForbiddenError(
            f"Farm quota exceeded: maximum of {settings.MAX_FARMS_PER_OWNER} farms allowed per user",
            code="farm_quota_exceeded",
            extra={"limit": settings.MAX_FARMS_PER_OWNER, "owned": owned},
        )

    owner_role = await catalog_crud.get_role_by_name(db, FarmRole.OWNER.value)
    if owner_role is None:
        # Catalog not seeded; nothing has been written yet.
        raise ForbiddenError("OWNER role not found", code="catalog_missing_owner_role")

    try:
        farm = Farm(name=name.strip(), owner_id=owner_id)
        db.add(farm)
        await db.flush()  # assigns farm.id

        db.add(FarmMember(user_id=owner_id, farm_id=farm.id, role_id=owner_role.id))
        await add_default_bindings(db, farm.id, DEFAULT_ROLE_BINDINGS)

        for season_name, start, end in default_seasons():
            db.add(Season(farm_id=farm.id, name=season_name, start_date=start, end_date=end))

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(farm)
    logger.info("created farm id=%s owner=%s", farm.id, owner_id)
    return farm


async def get_farm_details(db: AsyncSession, *, farm_id: int, requester_id: int) -> FarmDetails:
    farm = await farm_crud.get_farm(db, farm_id)
    if farm is None:
        raise NotFoundError("Farm not found")
    if await member_crud.get_membership(db, requester_id, farm_id) is None:
        raise ForbiddenError("not a member of farm", code="not_member")

    async def _count(stmt) -> int:
        return int((await db.execute(stmt)).scalar() or 0)

    return FarmDetails(
        id=farm.id,
        name=farm.name,
        owner_id=farm.owner_id,
        members_count=await member_crud.count_members(db, farm_id),
        fields_count=await _count(select(func.count(Field.id)).where(Field.farm_id == farm_id)),
        equipment_count=await _count(select(func.count(Equipment.id)).where(Equipment.farm_id == farm_id)),
        tasks_count=await _count(
            select(func.count(Task.id)).join(Field, Field.id == Task.field_id).where(Field.farm_id == farm_id)
        ),
    )


async def _get_owned_farm(db: AsyncSession, farm_id: int, requester_id: int, action: str) -> Farm:
    farm = await farm_crud.get_farm(db, farm_id, for_update=True)
    if farm is None:
        raise NotFoundError("Farm not found")
    if farm.owner_id != requester_id:
        raise ForbiddenError(f"Only the owner can {action} this farm", code="not_owner")
    return farm


async def rename_farm(db: AsyncSession, *, farm_id: int, new_name: str, requester_id: int) -> Farm:
    farm = await _get_owned_farm(db, farm_id, requester_id, "rename")

    new_name = (new_name or "").strip()
    if len(new_name) < MIN_FARM_NAME_LENGTH:
        raise ForbiddenError(
            f"Farm name must be at least {MIN_FARM_NAME_LENGTH} characters long",
            code="farm_name_too_short",
        )

    farm.name = new_name
    await db.commit()
    await db.refresh(farm)
    return farm


async def delete_farm(db: AsyncSession, *, farm_id: int, requester_id: int) -> None:
    """
    Tear the farm down in dependency order inside one transaction. Tasks are
    reached through their fields, so they go before the fields.
    """
    await _get_owned_farm(db, farm_id, requester_id, "delete")

    farm_field_ids = select(Field.id).where(Field.farm_id == farm_id)
    farm_task_ids = select(Task.id).where(Task.field_id.in_(farm_field_ids))

    steps = [
        delete(TaskParticipant).where(TaskParticipant.task_id.in_(farm_task_ids)),
        delete(Task).where(Task.field_id.in_(farm_field_ids)),
        delete(Field).where(Field.farm_id == farm_id),
        delete(FarmMember).where(FarmMember.farm_id == farm_id),
        delete(Equipment).where(Equipment.farm_id == farm_id),
        delete(Season).where(Season.farm_id == farm_id),
        delete(FarmInvitation).where(FarmInvitation.farm_id == farm_id),
        delete(FarmRolePermission).where(FarmRolePermission.farm_id == farm_id),
        delete(Farm).where(Farm.id == farm_id),
    ]

    try:
        for stmt in steps:
            await db.execute(stmt.execution_options(synchronize_session=False))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("deleted farm id=%s by owner=%s", farm_id, requester_id)
