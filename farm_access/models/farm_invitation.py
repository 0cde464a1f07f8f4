# farm_access/models/farm_invitation.py
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from farm_access.core.clock import utcnow
from farm_access.db.base import Base


class FarmInvitation(Base):
    """
    Pending invitation. Rows are working storage: accepted (or already-member)
    invitations are deleted, expired ones are ignored on access.
    """

    __tablename__ = "farm_invitations"
    __table_args__ = (
        UniqueConstraint("token", name="uq_farm_invitations_token"),
        Index("ix_farm_invitations_email_expires_at", "email", "expires_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    farm_id: Mapped[int] = mapped_column(Integer, ForeignKey("farms.id"), nullable=False, index=True)
    role_id: Mapped[int] = mapped_column(Integer, ForeignKey("roles.id"), nullable=False)

    email: Mapped[str] = mapped_column(String(320), nullable=False)
    token: Mapped[str] = mapped_column(String(1024), nullable=False)

    # Authoritative for expiry; the token's own exp claim is not consulted.
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
