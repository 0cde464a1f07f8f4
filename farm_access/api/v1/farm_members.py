# farm_access/api/v1/farm_members.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from farm_access.api.deps.auth import get_current_user
from farm_access.api.deps.farm import require_selected_farm_id
from farm_access.api.deps.permissions import FarmContext, require_permissions
from farm_access.auth.permissions import PERM
from farm_access.core import memberships
from farm_access.db.session import get_db
from farm_access.models.user import User
from farm_access.schemas.farm_member import (
    FarmMemberCreate,
    FarmMemberOut,
    FarmMemberRoleUpdate,
    MemberPermissionsOut,
)

router = APIRouter(prefix="/farm-members", tags=["farm-members"])


@router.get("", response_model=List[FarmMemberOut])
async def list_farm_members(
    db: AsyncSession = Depends(get_db),
    ctx: FarmContext = Depends(require_permissions(PERM.FARM_MEMBER_READ)),
):
    return await memberships.list_members(db, ctx.farm_id)


@router.get("/me/permissions", response_model=MemberPermissionsOut)
async def my_permissions(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    farm_id: int = Depends(require_selected_farm_id),
):
    """Permission names the caller holds in the selected farm (empty when not a member)."""
    names = await memberships.get_member_permissions(db, user_id=user.id, farm_id=farm_id)
    return MemberPermissionsOut(farm_id=farm_id, permissions=names)


@router.post("", status_code=status.HTTP_201_CREATED)
async def add_farm_member(
    payload: FarmMemberCreate,
    db: AsyncSession = Depends(get_db),
    ctx: FarmContext = Depends(require_permissions(PERM.FARM_MEMBER_ADD)),
):
    membership = await memberships.add_member(
        db,
        farm_id=ctx.farm_id,
        user_id=payload.user_id,
        role_id=payload.role_id,
    )
    return {
        "farm_id": membership.farm_id,
        "user_id": membership.user_id,
        "role_id": membership.role_id,
    }


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_farm_member(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: FarmContext = Depends(require_permissions(PERM.FARM_MEMBER_REMOVE)),
):
    await memberships.remove_member(db, farm_id=ctx.farm_id, user_id=user_id, requester_id=ctx.user.id)
    return None


@router.patch("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_farm_member_role(
    user_id: int,
    payload: FarmMemberRoleUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: FarmContext = Depends(require_permissions(PERM.FARM_MEMBER_UPDATE_ROLE)),
):
    await memberships.update_role(
        db,
        farm_id=ctx.farm_id,
        user_id=user_id,
        role_id=payload.role_id,
        requester_id=ctx.user.id,
    )
    return None
