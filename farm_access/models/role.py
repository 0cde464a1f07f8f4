# farm_access/models/role.py
from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from farm_access.db.base import Base


class Role(Base):
    """Global role catalog row. Roles carry no permissions by themselves; see FarmRolePermission."""

    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
