from __future__ import annotations

from dataclasses import dataclass, fields
from typing import FrozenSet, Mapping

from farm_access.core.roles import FarmRole


@dataclass(frozen=True)
class Permission:
    # platform
    ADMIN_ACCESS: str = "ADMIN_ACCESS"

    # role/permission administration
    PERMISSION_READ: str = "PERMISSION_READ"
    PERMISSION_ASSIGN: str = "PERMISSION_ASSIGN"
    PERMISSION_REMOVE: str = "PERMISSION_REMOVE"

    # farm members
    FARM_MEMBER_READ: str = "FARM_MEMBER_READ"
    FARM_MEMBER_ADD: str = "FARM_MEMBER_ADD"
    FARM_MEMBER_REMOVE: str = "FARM_MEMBER_REMOVE"
    FARM_MEMBER_INVITE: str = "FARM_MEMBER_INVITE"
    FARM_MEMBER_UPDATE_ROLE: str = "FARM_MEMBER_UPDATE_ROLE"

    # fields
    FIELD_READ: str = "FIELD_READ"
    FIELD_CREATE: str = "FIELD_CREATE"
    FIELD_UPDATE: str = "FIELD_UPDATE"
    FIELD_DELETE: str = "FIELD_DELETE"
    FIELD_TOTAL_AREA_READ: str = "FIELD_TOTAL_AREA_READ"
    FIELD_TASK_READ: str = "FIELD_TASK_READ"
    FIELD_TASK_CREATE: str = "FIELD_TASK_CREATE"
    FIELD_TASK_COMMENT_READ: str = "FIELD_TASK_COMMENT_READ"
    FIELD_TASK_COMMENT_CREATE: str = "FIELD_TASK_COMMENT_CREATE"
    FIELD_TASK_COMMENT_UPDATE: str = "FIELD_TASK_COMMENT_UPDATE"
    FIELD_TASK_COMMENT_DELETE: str = "FIELD_TASK_COMMENT_DELETE"

    # tasks
    TASK_READ: str = "TASK_READ"
    TASK_CREATE: str = "TASK_CREATE"
    TASK_UPDATE: str = "TASK_UPDATE"
    TASK_CHANGE_STATUS: str = "TASK_CHANGE_STATUS"
    TASK_STATS_READ: str = "TASK_STATS_READ"
    TASK_EQUIPMENT_READ: str = "TASK_EQUIPMENT_READ"
    TASK_EQUIPMENT_ASSIGN: str = "TASK_EQUIPMENT_ASSIGN"
    TASK_EQUIPMENT_REMOVE: str = "TASK_EQUIPMENT_REMOVE"

    # equipment, crops, seasons
    EQUIPMENT_READ: str = "EQUIPMENT_READ"
    CROP_READ: str = "CROP_READ"
    SEASON_READ: str = "SEASON_READ"

    # dashboard
    DASHBOARD_AI_SUMMARY: str = "DASHBOARD_AI_SUMMARY"


PERM = Permission()

# Fixed catalog, in declaration order.
ALL_PERMISSIONS: tuple[str, ...] = tuple(getattr(PERM, f.name) for f in fields(Permission))

_WORKER_PERMISSIONS: FrozenSet[str] = frozenset(
    {
        PERM.FIELD_READ,
        PERM.FIELD_TASK_READ,
        PERM.FIELD_TASK_COMMENT_CREATE,
        PERM.FIELD_TASK_COMMENT_READ,
        PERM.TASK_READ,
        PERM.EQUIPMENT_READ,
        PERM.CROP_READ,
        PERM.TASK_STATS_READ,
    }
)

# Bindings written for every new farm. Afterwards each farm edits its own copy.
DEFAULT_ROLE_BINDINGS: Mapping[str, FrozenSet[str]] = {
    FarmRole.OWNER.value: frozenset(p for p in ALL_PERMISSIONS if p != PERM.ADMIN_ACCESS),
    FarmRole.WORKER.value: _WORKER_PERMISSIONS,
    FarmRole.AGRONOMIST.value: _WORKER_PERMISSIONS
    | frozenset(
        {
            PERM.FIELD_TASK_COMMENT_UPDATE,
            PERM.FIELD_TASK_COMMENT_DELETE,
            PERM.TASK_CHANGE_STATUS,
            PERM.TASK_CREATE,
            PERM.TASK_UPDATE,
            PERM.FIELD_TOTAL_AREA_READ,
            PERM.DASHBOARD_AI_SUMMARY,
        }
    ),
}


def is_known_permission(name: str) -> bool:
    return name in ALL_PERMISSIONS
