# farm_access/models/farm_member.py
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from farm_access.core.clock import utcnow
from farm_access.db.base import Base


class FarmMember(Base):
    __tablename__ = "farm_members"
    __table_args__ = (
        # One membership per (user, farm); also what serializes concurrent invitation accepts.
        UniqueConstraint("user_id", "farm_id", name="uq_farm_members_user_farm"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    farm_id: Mapped[int] = mapped_column(Integer, ForeignKey("farms.id"), nullable=False, index=True)
    role_id: Mapped[int] = mapped_column(Integer, ForeignKey("roles.id"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
