from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


def _normalize_name(value: str) -> str:
    return " ".join((value or "").strip().split())


class FarmCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        v = _normalize_name(v)
        if not v:
            raise ValueError("name must not be blank")
        return v


class FarmRename(BaseModel):
    # Length rule (>= 3) is enforced by the farm lifecycle, not here.
    name: str = Field(max_length=200)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        return _normalize_name(v)


class FarmOut(BaseModel):
    id: int
    name: str
    owner_id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class UserFarmOut(BaseModel):
    farm_id: int
    name: str
    owner_id: int
    role_name: str
    is_owner: bool

    model_config = {"from_attributes": True}


class FarmDetailsOut(BaseModel):
    id: int
    name: str
    owner_id: int
    members_count: int
    fields_count: int
    equipment_count: int
    tasks_count: int

    model_config = {"from_attributes": True}
