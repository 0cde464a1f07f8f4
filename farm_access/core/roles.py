# farm_access/core/roles.py

import enum


class FarmRole(str, enum.Enum):
    OWNER = "OWNER"            # creator; must delete the farm instead of leaving
    AGRONOMIST = "AGRONOMIST"  # manages tasks and crop data
    WORKER = "WORKER"          # read-mostly field worker


def normalize_role_name(role: str | None) -> str:
    return (role or "").strip().upper()
