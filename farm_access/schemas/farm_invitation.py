from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class FarmInviteCreate(BaseModel):
    email: EmailStr
    role_id: int = Field(gt=0)


class FarmInviteOut(BaseModel):
    id: int
    farm_id: int
    email: str
    role_id: int
    expires_at: datetime

    model_config = {"from_attributes": True}


class FarmInviteListItem(BaseModel):
    id: int
    email: str
    role_id: int
    role_name: str
    expires_at: datetime
    created_at: datetime
    is_expired: bool

    model_config = {"from_attributes": True}


class PendingInviteOut(BaseModel):
    id: int
    token: str
    farm_id: int
    farm_name: str
    role_name: str
    expires_at: datetime

    model_config = {"from_attributes": True}


class InviteVerificationOut(BaseModel):
    status: str
    email: str
    farm_id: int
    farm_name: str
    role_name: str
    requires_registration: bool
    already_processed: bool


class InviteAcceptanceOut(BaseModel):
    status: str
    message: str
    farm_id: int
    farm_name: str
    role_id: Optional[int] = None
