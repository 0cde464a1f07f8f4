# farm_access/core/role_bindings.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import FrozenSet, List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from farm_access.auth.permissions import ALL_PERMISSIONS
from farm_access.core.errors import NotFoundError
from farm_access.core.roles import FarmRole
from farm_access.crud import catalog as catalog_crud
from farm_access.models.farm_role_permission import FarmRolePermission
from farm_access.models.permission import Permission
from farm_access.models.role import Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundPermission:
    binding_id: int
    permission_id: int
    name: str


@dataclass(frozen=True)
class RoleWithBindings:
    id: int
    name: str
    permissions: List[BoundPermission]


async def seed_catalog(db: AsyncSession) -> None:
    """
    Insert missing catalog rows (permissions and roles). Idempotent; never
    renames or deletes. Request handlers only read the catalog.
    """
    existing_perms = set((await db.execute(select(Permission.name))).scalars().all())
    for name in ALL_PERMISSIONS:
        if name not in existing_perms:
            db.add(Permission(name=name))

    existing_roles = set((await db.execute(select(Role.name))).scalars().all())
    for role in FarmRole:
        if role.value not in existing_roles:
            db.add(Role(name=role.value))

    await db.commit()


async def list_permissions(db: AsyncSession) -> List[Permission]:
    stmt = select(Permission).order_by(Permission.id)
    return list((await db.execute(stmt)).scalars().all())


async def list_roles_with_bindings(db: AsyncSession, farm_id: int) -> List[RoleWithBindings]:
    """
    Roles that have at least one binding in farm_id, each with only that farm's bindings.
    """
    stmt = (
        select(Role.id, Role.name, FarmRolePermission.id, Permission.id, Permission.name)
        .join(FarmRolePermission, FarmRolePermission.role_id == Role.id)
        .join(Permission, Permission.id == FarmRolePermission.permission_id)
        .where(FarmRolePermission.farm_id == farm_id)
        .order_by(Role.id, Permission.id, FarmRolePermission.id)
    )
    grouped: dict[int, RoleWithBindings] = {}
    for role_id, role_name, binding_id, permission_id, permission_name in (await db.execute(stmt)).all():
        entry = grouped.get(role_id)
        if entry is None:
            entry = grouped[role_id] = RoleWithBindings(id=role_id, name=role_name, permissions=[])
        entry.permissions.append(
            BoundPermission(binding_id=binding_id, permission_id=permission_id, name=permission_name)
        )
    return list(grouped.values())


async def bind(db: AsyncSession, *, role_id: int, permission_id: int, farm_id: int) -> FarmRolePermission:
    """
    Grant permission_id to role_id inside farm_id only.
    Not deduplicated: callers must not bind the same triple twice.
    """
    if await catalog_crud.get_role(db, role_id) is None:
        raise NotFoundError("Role not found")
    if await catalog_crud.get_permission(db, permission_id) is None:
        raise NotFoundError("Permission not found")

    binding = FarmRolePermission(role_id=role_id, permission_id=permission_id, farm_id=farm_id)
    db.add(binding)
    await db.commit()
    await db.refresh(binding)

    logger.info("bound permission=%s to role=%s in farm=%s", permission_id, role_id, farm_id)
    return binding


async def unbind(db: AsyncSession, *, role_id: int, permission_id: int, farm_id: int) -> bool:
    """
    Remove at most one matching binding. Returns False when nothing matched.
    """
    stmt = (
        select(FarmRolePermission.id)
        .where(
            FarmRolePermission.role_id == role_id,
            FarmRolePermission.permission_id == permission_id,
            FarmRolePermission.farm_id == farm_id,
        )
        .order_by(FarmRolePermission.id)
        .limit(1)
    )
    binding_id = (await db.execute(stmt)).scalar_one_or_none()
    if binding_id is None:
        return False

    await db.execute(
        delete(FarmRolePermission)
        .where(FarmRolePermission.id == binding_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    logger.info("unbound permission=%s from role=%s in farm=%s", permission_id, role_id, farm_id)
    return True


async def add_default_bindings(
    db: AsyncSession,
    farm_id: int,
    defaults: Mapping[str, FrozenSet[str]],
) -> None:
    """
    Stage the default (role, permission) grants for a new farm. Does not commit:
    the caller owns the transaction. Roles absent from the catalog are skipped.
    """
    roles = await catalog_crud.get_roles_by_names(db, list(defaults))
    wanted = set().union(*defaults.values()) if defaults else set()
    perm_ids = {
        name: pid
        for pid, name in (
            await db.execute(select(Permission.id, Permission.name).where(Permission.name.in_(wanted)))
        ).all()
    }

    for role_name, names in defaults.items():
        role = roles.get(role_name)
        if role is None:
            logger.warning("role %s missing from catalog; no default bindings for farm=%s", role_name, farm_id)
            continue
        for name in sorted(names):
            pid = perm_ids.get(name)
            if pid is not None:
                db.add(FarmRolePermission(role_id=role.id, permission_id=pid, farm_id=farm_id))
