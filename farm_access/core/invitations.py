# farm_access/core/invitations.py
"""
Farm invitation lifecycle.

    CREATED -> PENDING -> ACCEPTED | ALREADY_MEMBER   (row deleted)
                       -> EXPIRED | EMAIL_MISMATCH     (refused, row untouched)

The stored row is the source of truth for a live invitation, including its
expiry (expires_at column). The signed token claims are only consulted once the
row is gone, to answer a replay by a user who already joined.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from farm_access.core.clock import as_utc, utcnow
from farm_access.core.config import settings
from farm_access.core.errors import ForbiddenError, NotFoundError
from farm_access.core.mail import MailSender, dispatch_invitation
from farm_access.core.security import create_invitation_token, decode_invitation_claims
from farm_access.crud import catalog as catalog_crud
from farm_access.crud import farm as farm_crud
from farm_access.crud import farm_member as member_crud
from farm_access.models.farm import Farm
from farm_access.models.farm_invitation import FarmInvitation
from farm_access.models.farm_member import FarmMember
from farm_access.models.role import Role
from farm_access.models.user import User

logger = logging.getLogger(__name__)


class InvitationStatus(str, enum.Enum):
    # verify (read-only probe)
    REGISTRATION_REQUIRED = "REGISTRATION_REQUIRED"
    ALREADY_PROCESSED = "ALREADY_PROCESSED"
    READY_TO_ACCEPT = "READY_TO_ACCEPT"
    # accept
    ACCEPTED = "ACCEPTED"
    ALREADY_MEMBER = "ALREADY_MEMBER"


@dataclass(frozen=True)
class InvitationVerification:
    status: InvitationStatus
    email: str
    farm_id: int
    farm_name: str
    role_name: str

    @property
    def requires_registration(self) -> bool:
        return self.status is InvitationStatus.REGISTRATION_REQUIRED

    @property
    def already_processed(self) -> bool:
        return self.status is InvitationStatus.ALREADY_PROCESSED


@dataclass(frozen=True)
class InvitationAcceptance:
    status: InvitationStatus
    farm_id: int
    farm_name: str
    role_id: Optional[int] = None

    @property
    def message(self) -> str:
        if self.status is InvitationStatus.ACCEPTED:
            return f"You have successfully joined {self.farm_name}"
        return "You are already a member of this farm"


@dataclass(frozen=True)
class PendingInvitation:
    id: int
    token: str
    farm_id: int
    farm_name: str
    role_name: str
    expires_at: datetime


@dataclass(frozen=True)
class FarmInvitationView:
    id: int
    email: str
    role_id: int
    role_name: str
    expires_at: datetime
    created_at: datetime
    is_expired: bool


def _is_expired(expires_at: datetime, now: Optional[datetime] = None) -> bool:
    return (now or utcnow()) > as_utc(expires_at)


async def purge_expired_invitations(db: AsyncSession, farm_id: int, email: str) -> None:
    """
    Lazy cleanup of expired rows for one (farm, email); there is no background reaper.
    """
    await db.execute(
        delete(FarmInvitation)
        .where(
            FarmInvitation.farm_id == farm_id,
            FarmInvitation.email == email,
            FarmInvitation.expires_at < utcnow(),
        )
        .execution_options(synchronize_session="fetch")
    )


async def create_invitation(
    db: AsyncSession,
    *,
    farm_id: int,
    email: str,
    role_id: int,
    mail_sender: Optional[MailSender] = None,
) -> FarmInvitation:
    farm = await farm_crud.get_farm(db, farm_id)
    if farm is None:
        raise NotFoundError("Farm not found")

    if await catalog_crud.get_role(db, role_id) is None:
        raise NotFoundError("Role not found")

    email = User.normalize_email(email)

    existing_user = await catalog_crud.get_user_by_email(db, email)
    if existing_user is not None:
        if await member_crud.get_membership(db, existing_user.id, farm_id) is not None:
            raise ForbiddenError("User is already a member of this farm", code="already_member")

    await purge_expired_invitations(db, farm_id, email)

    expires_at = utcnow() + timedelta(days=settings.FARM_INVITATION_EXPIRE_DAYS)
    invitation = FarmInvitation(
        farm_id=farm_id,
        role_id=role_id,
        email=email,
        token=create_invitation_token(email=email, farm_id=farm_id, role_id=role_id, expires_at=expires_at),
        expires_at=expires_at,
    )
    db.add(invitation)
    await db.commit()
    await db.refresh(invitation)

    logger.info("created invitation id=%s farm=%s email=%s role=%s", invitation.id, farm_id, email, role_id)

    # Row is committed first; a failed send does not undo the invitation.
    if mail_sender is not None:
        await dispatch_invitation(mail_sender, to_email=email, token=invitation.token, farm_name=farm.name)

    return invitation


async def _get_invitation_with_farm(db: AsyncSession, token: str) -> Optional[tuple[FarmInvitation, str, str]]:
    stmt = (
        select(FarmInvitation, Farm.name, Role.name)
        .join(Farm, Farm.id == FarmInvitation.farm_id)
        .join(Role, Role.id == FarmInvitation.role_id)
        .where(FarmInvitation.token == token)
    )
    row = (await db.execute(stmt)).first()
    if row is None:
        return None
    return row[0], row[1], row[2]


async def verify_invitation(db: AsyncSession, token: str) -> InvitationVerification:
    """
    Read-only probe used before choosing between the registration and login forms.
    """
    found = await _get_invitation_with_farm(db, (token or "").strip())
    if found is None:
        raise NotFoundError("Invitation not found")
    invitation, farm_name, role_name = found

    if _is_expired(invitation.expires_at):
        raise ForbiddenError("Invitation has expired", code="invitation_expired")

    user = await catalog_crud.get_user_by_email(db, invitation.email)
    if user is None:
        status = InvitationStatus.REGISTRATION_REQUIRED
    elif await member_crud.get_membership(db, user.id, invitation.farm_id) is not None:
        status = InvitationStatus.ALREADY_PROCESSED
    else:
        status = InvitationStatus.READY_TO_ACCEPT

    return InvitationVerification(
        status=status,
        email=invitation.email,
        farm_id=invitation.farm_id,
        farm_name=farm_name,
        role_name=role_name,
    )


async def _answer_replay(db: AsyncSession, token: str, user: User) -> InvitationAcceptance:
    claims = decode_invitation_claims(token)
    if claims is not None and User.normalize_email(claims.get("email", "")) == User.normalize_email(user.email):
        try:
            farm_id = int(claims.get("farm_id"))
        except (TypeError, ValueError):
            farm_id = None
        if farm_id is not None and await member_crud.get_membership(db, user.id, farm_id) is not None:
            farm = await farm_crud.get_farm(db, farm_id)
            return InvitationAcceptance(
                status=InvitationStatus.ALREADY_MEMBER,
                farm_id=farm_id,
                farm_name=farm.name if farm else "the farm",
            )
    raise NotFoundError("Invitation not found")


async def accept_invitation(db: AsyncSession, token: str, user: User) -> InvitationAcceptance:
    """
    Redeem token for the authenticated user.

    The invitation row is locked and deleted in the same transaction that
    inserts the membership; the (user_id, farm_id) unique constraint turns a
    concurrent second insert into ALREADY_MEMBER.
    """
    token = (token or "").strip()
    user_id = user.id

    invitation = (
        await db.execute(
            select(FarmInvitation)
            .where(FarmInvitation.token == token)
            .with_for_update()
        )
    ).scalar_one_or_none()

    if invitation is None:
        return await _answer_replay(db, token, user)

    if _is_expired(invitation.expires_at):
        raise ForbiddenError("Invitation has expired", code="invitation_expired")

    invite_email = User.normalize_email(invitation.email)
    user_email = User.normalize_email(user.email)
    if user_email != invite_email:
        raise ForbiddenError(
            "You are signed in with a different email than the invitation",
            code="invitation_email_mismatch",
            extra={"invited_email": invite_email, "current_email": user_email},
        )

    # Plain values; a rollback below expires ORM instances.
    invitation_id = invitation.id
    farm_id = invitation.farm_id
    role_id = invitation.role_id

    farm = await farm_crud.get_farm(db, farm_id)
    farm_name = farm.name if farm else "the farm"

    if await member_crud.get_membership(db, user_id, farm_id) is not None:
        await db.delete(invitation)
        await db.commit()
        logger.info("invitation id=%s consumed: user=%s already in farm=%s", invitation_id, user_id, farm_id)
        return InvitationAcceptance(status=InvitationStatus.ALREADY_MEMBER, farm_id=farm_id, farm_name=farm_name)

    await db.delete(invitation)
    db.add(FarmMember(user_id=user_id, farm_id=farm_id, role_id=role_id))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        if await member_crud.get_membership(db, user_id, farm_id) is None:
            # Some other constraint failed; not a duplicate membership.
            raise
        await db.execute(
            delete(FarmInvitation)
            .where(FarmInvitation.id == invitation_id)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        logger.info("invitation id=%s lost accept race: user=%s already in farm=%s", invitation_id, user_id, farm_id)
        return InvitationAcceptance(status=InvitationStatus.ALREADY_MEMBER, farm_id=farm_id, farm_name=farm_name)

    logger.info("invitation id=%s accepted: user=%s joined farm=%s role=%s", invitation_id, user_id, farm_id, role_id)
    return InvitationAcceptance(
        status=InvitationStatus.ACCEPTED,
        farm_id=farm_id,
        farm_name=farm_name,
        role_id=role_id,
    )


async def get_pending_invitations_by_email(db: AsyncSession, email: str) -> List[PendingInvitation]:
    stmt = (
        select(FarmInvitation, Farm.name, Role.name)
        .join(Farm, Farm.id == FarmInvitation.farm_id)
        .join(Role, Role.id == FarmInvitation.role_id)
        .where(
            FarmInvitation.email == User.normalize_email(email),
            FarmInvitation.expires_at > utcnow(),
        )
        .order_by(FarmInvitation.created_at.desc(), FarmInvitation.id.desc())
    )
    return [
        PendingInvitation(
            id=inv.id,
            token=inv.token,
            farm_id=inv.farm_id,
            farm_name=farm_name,
            role_name=role_name,
            expires_at=as_utc(inv.expires_at),
        )
        for inv, farm_name, role_name in (await db.execute(stmt)).all()
    ]


async def list_farm_invitations(db: AsyncSession, farm_id: int) -> List[FarmInvitationView]:
    stmt = (
        select(FarmInvitation, Role.name)
        .join(Role, Role.id == FarmInvitation.role_id)
        .where(FarmInvitation.farm_id == farm_id)
        .order_by(FarmInvitation.created_at.desc(), FarmInvitation.id.desc())
    )
    now = utcnow()
    return [
        FarmInvitationView(
            id=inv.id,
            email=inv.email,
            role_id=inv.role_id,
            role_name=role_name,
            expires_at=as_utc(inv.expires_at),
            created_at=as_utc(inv.created_at),
            is_expired=_is_expired(inv.expires_at, now),
        )
        for inv, role_name in (await db.execute(stmt)).all()
    ]


async def revoke_invitation(db: AsyncSession, *, farm_id: int, invitation_id: int) -> None:
    invitation = (
        await db.execute(
            select(FarmInvitation).where(
                FarmInvitation.id == invitation_id,
                FarmInvitation.farm_id == farm_id,
            )
        )
    ).scalar_one_or_none()
    if invitation is None:
        raise NotFoundError("Invitation not found")

    await db.delete(invitation)
    await db.commit()
    logger.info("revoked invitation id=%s in farm=%s", invitation_id, farm_id)
