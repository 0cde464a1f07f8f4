from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class PermissionOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None

    model_config = {"from_attributes": True}


class BoundPermissionOut(BaseModel):
    binding_id: int
    permission_id: int
    name: str

    model_config = {"from_attributes": True}


class RoleWithPermissionsOut(BaseModel):
    id: int
    name: str
    permissions: List[BoundPermissionOut]

    model_config = {"from_attributes": True}


class RolePermissionAssign(BaseModel):
    permission_id: int = Field(gt=0)


class RolePermissionOut(BaseModel):
    id: int
    farm_id: int
    role_id: int
    permission_id: int

    model_config = {"from_attributes": True}
