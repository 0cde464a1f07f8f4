# farm_access/core/memberships.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from farm_access.core.errors import ConflictError, ForbiddenError, NotFoundError
from farm_access.core.farm_rbac import resolve_membership_permissions
from farm_access.crud import catalog as catalog_crud
from farm_access.crud import farm as farm_crud
from farm_access.crud import farm_member as member_crud
from farm_access.models.farm import Farm
from farm_access.models.farm_member import FarmMember
from farm_access.models.role import Role
from farm_access.models.user import User

logger = logging.getLogger(__name__)

SELF_ACTION = "self_action_forbidden"


@dataclass(frozen=True)
class MemberView:
    user_id: int
    username: str
    email: str
    role_name: str
    role_id: int


@dataclass(frozen=True)
class UserFarmView:
    farm_id: int
    name: str
    owner_id: int
    role_name: str
    is_owner: bool


async def list_members(db: AsyncSession, farm_id: int) -> List[MemberView]:
    stmt = (
        select(User.id, User.username, User.email, Role.name, Role.id)
        .join(FarmMember, FarmMember.user_id == User.id)
        .join(Role, Role.id == FarmMember.role_id)
        .where(FarmMember.farm_id == farm_id)
        .order_by(FarmMember.created_at, User.id)
    )
    return [
        MemberView(user_id=uid, username=username, email=email, role_name=role_name, role_id=role_id)
        for uid, username, email, role_name, role_id in (await db.execute(stmt)).all()
    ]


async def add_member(db: AsyncSession, *, farm_id: int, user_id: int, role_id: int) -> FarmMember:
    if await farm_crud.get_farm(db, farm_id) is None:
        raise NotFoundError("Farm not found")
    if await catalog_crud.get_user(db, user_id) is None:
        raise NotFoundError("User not found")
    if await catalog_crud.get_role(db, role_id) is None:
        raise NotFoundError("Role not found")

    if await member_crud.get_membership(db, user_id, farm_id) is not None:
        raise ConflictError("User is already a member of this farm", code="already_member")

    membership = FarmMember(user_id=user_id, farm_id=farm_id, role_id=role_id)
    db.add(membership)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race against another insert for the same (user, farm).
        await db.rollback()
        raise ConflictError("User is already a member of this farm", code="already_member")
    await db.refresh(membership)

    logger.info("added user=%s to farm=%s with role=%s", user_id, farm_id, role_id)
    return membership


async def _get_farm_or_404(db: AsyncSession, farm_id: int) -> Farm:
    farm = await farm_crud.get_farm(db, farm_id)
    if farm is None:
        raise NotFoundError("Farm not found")
    return farm


async def remove_member(db: AsyncSession, *, farm_id: int, user_id: int, requester_id: int) -> None:
    """
    Delete the (user, farm) membership by filter. A membership that is already
    gone counts as removed.
    """
    if user_id == requester_id:
        raise ForbiddenError("You cannot remove yourself from the farm", code=SELF_ACTION)

    farm = await _get_farm_or_404(db, farm_id)
    if farm.owner_id == user_id:
        raise ForbiddenError("The farm owner cannot be removed", code="owner_protected")

    await db.execute(
        delete(FarmMember)
        .where(FarmMember.farm_id == farm_id, FarmMember.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("user=%s removed user=%s from farm=%s", requester_id, user_id, farm_id)


async def update_role(db: AsyncSession, *, farm_id: int, user_id: int, role_id: int, requester_id: int) -> None:
    if user_id == requester_id:
        raise ForbiddenError("You cannot change your own role", code=SELF_ACTION)

    farm = await _get_farm_or_404(db, farm_id)
    if farm.owner_id == user_id:
        raise ForbiddenError("The farm owner's role cannot be changed", code="owner_protected")
    if await catalog_crud.get_role(db, role_id) is None:
        raise NotFoundError("Role not found")

    await db.execute(
        update(FarmMember)
        .where(FarmMember.farm_id == farm_id, FarmMember.user_id == user_id)
        .values(role_id=role_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("user=%s set role=%s for user=%s in farm=%s", requester_id, role_id, user_id, farm_id)


async def leave_farm(db: AsyncSession, *, user_id: int, farm_id: int) -> None:
    membership = await member_crud.get_membership(db, user_id, farm_id)
    if membership is None:
        raise NotFoundError("Membership not found")

    farm = await _get_farm_or_404(db, farm_id)
    if farm.owner_id == user_id:
        raise ForbiddenError("Owner must delete the farm instead of leaving", code="owner_must_delete")

    await db.delete(membership)
    await db.commit()
    logger.info("user=%s left farm=%s", user_id, farm_id)


async def list_user_farms(db: AsyncSession, user_id: int) -> List[UserFarmView]:
    stmt = (
        select(Farm.id, Farm.name, Farm.owner_id, Role.name)
        .join(FarmMember, FarmMember.farm_id == Farm.id)
        .join(Role, Role.id == FarmMember.role_id)
        .where(FarmMember.user_id == user_id)
        .order_by(Farm.created_at.desc(), Farm.id.desc())
    )
    return [
        UserFarmView(farm_id=fid, name=name, owner_id=owner_id, role_name=role_name, is_owner=owner_id == user_id)
        for fid, name, owner_id, role_name in (await db.execute(stmt)).all()
    ]


async def get_member_permissions(db: AsyncSession, *, user_id: int, farm_id: int) -> List[str]:
    _, names = await resolve_membership_permissions(db, user_id, farm_id)
    return sorted(names)
