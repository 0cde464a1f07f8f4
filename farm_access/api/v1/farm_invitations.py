# farm_access/api/v1/farm_invitations.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from farm_access.api.deps.auth import get_current_user
from farm_access.api.deps.permissions import FarmContext, require_permissions
from farm_access.auth.permissions import PERM
from farm_access.core import invitations
from farm_access.core.mail import MailSender, get_mail_sender
from farm_access.db.session import get_db
from farm_access.models.user import User
from farm_access.schemas.farm_invitation import (
    FarmInviteCreate,
    FarmInviteListItem,
    FarmInviteOut,
    InviteAcceptanceOut,
    InviteVerificationOut,
    PendingInviteOut,
)

router = APIRouter(prefix="/farm-invitations", tags=["farm-invitations"])


# =========================================================
# CREATE + LIST + REVOKE (farm-scoped)
# =========================================================
@router.post("", response_model=FarmInviteOut, status_code=status.HTTP_201_CREATED)
async def create_farm_invitation(
    payload: FarmInviteCreate,
    db: AsyncSession = Depends(get_db),
    ctx: FarmContext = Depends(require_permissions(PERM.FARM_MEMBER_INVITE)),
    mail_sender: MailSender = Depends(get_mail_sender),
):
    """
    Invite an email address into the selected farm with the given role.
    The join link is mailed after the invitation is stored.
    """
    return await invitations.create_invitation(
        db,
        farm_id=ctx.farm_id,
        email=str(payload.email),
        role_id=payload.role_id,
        mail_sender=mail_sender,
    )


@router.get("", response_model=List[FarmInviteListItem])
async def list_farm_invitations(
    db: AsyncSession = Depends(get_db),
    ctx: FarmContext = Depends(require_permissions(PERM.FARM_MEMBER_INVITE)),
):
    return await invitations.list_farm_invitations(db, ctx.farm_id)


@router.delete("/{invitation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_farm_invitation(
    invitation_id: int,
    db: AsyncSession = Depends(get_db),
    ctx: FarmContext = Depends(require_permissions(PERM.FARM_MEMBER_INVITE)),
):
    await invitations.revoke_invitation(db, farm_id=ctx.farm_id, invitation_id=invitation_id)
    return None


# =========================================================
# INVITEE SIDE
# =========================================================
@router.get("/check-pending", response_model=List[PendingInviteOut])
async def check_pending_invitations(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await invitations.get_pending_invitations_by_email(db, user.email)


@router.get("/{token}/verify", response_model=InviteVerificationOut)
async def verify_farm_invitation(
    token: str,
    db: AsyncSession = Depends(get_db),
):
    """Public probe: tells the client whether to show registration or login."""
    result = await invitations.verify_invitation(db, token)
    return InviteVerificationOut(
        status=result.status.value,
        email=result.email,
        farm_id=result.farm_id,
        farm_name=result.farm_name,
        role_name=result.role_name,
        requires_registration=result.requires_registration,
        already_processed=result.already_processed,
    )


@router.post("/{token}", response_model=InviteAcceptanceOut)
async def accept_farm_invitation(
    token: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = await invitations.accept_invitation(db, token, user)
    return InviteAcceptanceOut(
        status=result.status.value,
        message=result.message,
        farm_id=result.farm_id,
        farm_name=result.farm_name,
        role_id=result.role_id,
    )
