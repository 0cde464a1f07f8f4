# farm_access/api/v1/roles.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from farm_access.api.deps.permissions import FarmContext, require_permissions
from farm_access.auth.permissions import PERM
from farm_access.core import role_bindings
from farm_access.db.session import get_db
from farm_access.schemas.role import (
    PermissionOut,
    RolePermissionAssign,
    RolePermissionOut,
    RoleWithPermissionsOut,
)

router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("", response_model=List[RoleWithPermissionsOut])
async def list_roles(
    db: AsyncSession = Depends(get_db),
    ctx: FarmContext = Depends(
        require_permissions(any_of=[{PERM.PERMISSION_READ}, {PERM.FARM_MEMBER_UPDATE_ROLE}])
    ),
):
    """Roles bound in the selected farm, each with that farm's permissions only."""
    return await role_bindings.list_roles_with_bindings(db, ctx.farm_id)


@router.get("/permissions", response_model=List[PermissionOut])
async def list_permissions(
    db: AsyncSession = Depends(get_db),
    _ctx: FarmContext = Depends(require_permissions(PERM.PERMISSION_READ)),
):
    return await role_bindings.list_permissions(db)


@router.post(
    "/{role_id}/permissions",
    response_model=RolePermissionOut,
    status_code=status.HTTP_201_CREATED,
)
async def assign_permission(
    role_id: int,
    payload: RolePermissionAssign,
    db: AsyncSession = Depends(get_db),
    ctx: FarmContext = Depends(require_permissions(PERM.PERMISSION_ASSIGN)),
):
    return await role_bindings.bind(
        db,
        role_id=role_id,
        permission_id=payload.permission_id,
        farm_id=ctx.farm_id,
    )


@router.delete("/{role_id}/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_permission(
    role_id: int,
    permission_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: FarmContext = Depends(require_permissions(PERM.PERMISSION_REMOVE)),
):
    # No-op when nothing is bound.
    await role_bindings.unbind(db, role_id=role_id, permission_id=permission_id, farm_id=ctx.farm_id)
    return None
