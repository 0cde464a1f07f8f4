from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class FarmMemberOut(BaseModel):
    user_id: int
    username: str
    email: str
    role_name: str
    role_id: int

    model_config = {"from_attributes": True}


class FarmMemberCreate(BaseModel):
    user_id: int = Field(gt=0)
    role_id: int = Field(gt=0)


class FarmMemberRoleUpdate(BaseModel):
    role_id: int = Field(gt=0)


class MemberPermissionsOut(BaseModel):
    farm_id: int
    permissions: List[str]
