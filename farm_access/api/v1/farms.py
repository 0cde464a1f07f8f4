# farm_access/api/v1/farms.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from farm_access.api.deps.auth import get_current_user
from farm_access.core import farms, memberships
from farm_access.db.session import get_db
from farm_access.models.user import User
from farm_access.schemas.farm import FarmCreate, FarmDetailsOut, FarmOut, FarmRename, UserFarmOut

router = APIRouter(prefix="/farms", tags=["farms"])


@router.post("", response_model=FarmOut, status_code=status.HTTP_201_CREATED)
async def create_farm(
    payload: FarmCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await farms.create_farm(db, owner_id=user.id, name=payload.name)


@router.get("", response_model=List[UserFarmOut])
async def list_my_farms(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Farms the current user belongs to. Powers the farm selection screen.
    """
    return await memberships.list_user_farms(db, user.id)


# Declared before /{farm_id} routes so "leave" is never parsed as an id.
@router.delete("/leave/{farm_id}")
async def leave_farm(
    farm_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await memberships.leave_farm(db, user_id=user.id, farm_id=farm_id)
    return {"success": True}


@router.get("/{farm_id}", response_model=FarmDetailsOut)
async def get_farm_details(
    farm_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await farms.get_farm_details(db, farm_id=farm_id, requester_id=user.id)


@router.patch("/{farm_id}", response_model=FarmOut)
async def rename_farm(
    farm_id: int,
    payload: FarmRename,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await farms.rename_farm(db, farm_id=farm_id, new_name=payload.name, requester_id=user.id)


@router.delete("/{farm_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_farm(
    farm_id: int,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    await farms.delete_farm(db, farm_id=farm_id, requester_id=user.id)
    return None
