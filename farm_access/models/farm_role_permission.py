# farm_access/models/farm_role_permission.py
from sqlalchemy import ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from farm_access.db.base import Base


class FarmRolePermission(Base):
    """
    (role, permission, farm) grant. A binding only grants the permission inside its farm.

    No unique constraint on the triple: duplicates collapse into a set when resolved.
    """

    __tablename__ = "farm_role_permissions"
    __table_args__ = (
        # The resolver always filters by (role_id, farm_id).
        Index("ix_farm_role_permissions_role_farm", "role_id", "farm_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    farm_id: Mapped[int] = mapped_column(Integer, ForeignKey("farms.id"), nullable=False, index=True)
    role_id: Mapped[int] = mapped_column(Integer, ForeignKey("roles.id"), nullable=False)
    permission_id: Mapped[int] = mapped_column(Integer, ForeignKey("permissions.id"), nullable=False)
