# farm_access/core/farm_rbac.py
"""
Farm-scoped authorization resolver.

A user's effective permissions in a farm are the names bound to
(membership.role_id, farm_id) in farm_role_permissions. Bindings of the same
role in other farms never participate.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from farm_access.models.farm_member import FarmMember
from farm_access.models.farm_role_permission import FarmRolePermission
from farm_access.models.permission import Permission

logger = logging.getLogger(__name__)

DENY_MISSING_CONTEXT = "missing_context"
DENY_NOT_MEMBER = "not_member"
DENY_MISSING_PERMISSION = "missing_permission"


@dataclass(frozen=True)
class PermissionRequirement:
    """
    Alternative permission sets. The requirement holds when ANY one set is
    fully granted; each set is conjunctive. No sets means no requirement.
    """

    alternatives: tuple[FrozenSet[str], ...] = ()

    @classmethod
    def all_of(cls, *names: str) -> "PermissionRequirement":
        names_set = frozenset(n for n in names if n)
        return cls((names_set,) if names_set else ())

    @classmethod
    def any_of(cls, *sets: Iterable[str]) -> "PermissionRequirement":
        alts = tuple(frozenset(s) for s in sets)
        return cls(tuple(a for a in alts if a))

    @property
    def is_empty(self) -> bool:
        return not self.alternatives

    def missing_from(self, granted: FrozenSet[str]) -> tuple[str, ...]:
        """
        Missing names of the closest alternative; empty tuple when satisfied.
        """
        best: Optional[tuple[str, ...]] = None
        for alt in self.alternatives:
            missing = tuple(sorted(alt - granted))
            if not missing:
                return ()
            if best is None or len(missing) < len(best):
                best = missing
        return best or ()


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None
    code: Optional[str] = None
    role_id: Optional[int] = None
    missing: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def allow(cls, role_id: Optional[int] = None) -> "AccessDecision":
        return cls(allowed=True, role_id=role_id)

    @classmethod
    def deny(cls, code: str, reason: str, *, role_id: Optional[int] = None, missing: tuple[str, ...] = ()) -> "AccessDecision":
        return cls(allowed=False, reason=reason, code=code, role_id=role_id, missing=missing)


async def resolve_membership_permissions(
    db: AsyncSession,
    user_id: int,
    farm_id: int,
) -> tuple[Optional[int], FrozenSet[str]]:
    """
    One round trip: membership joined to its farm-scoped bindings.
    Returns (role_id, permission names); role_id is None when there is no membership.
    """
    stmt = (
        select(FarmMember.role_id, Permission.name)
        .select_from(FarmMember)
        .outerjoin(
            FarmRolePermission,
            and_(
                FarmRolePermission.role_id == FarmMember.role_id,
                FarmRolePermission.farm_id == FarmMember.farm_id,
            ),
        )
        .outerjoin(Permission, Permission.id == FarmRolePermission.permission_id)
        .where(FarmMember.user_id == user_id, FarmMember.farm_id == farm_id)
    )
    rows = (await db.execute(stmt)).all()
    if not rows:
        return None, frozenset()

    role_id = rows[0][0]
    return role_id, frozenset(name for _, name in rows if name)


async def authorize(
    db: AsyncSession,
    user_id: Optional[int],
    farm_id: Optional[int],
    requirement: PermissionRequirement,
) -> AccessDecision:
    """
    Decide whether user_id may act in farm_id. Always hits storage; bindings
    can change between calls, so decisions are never cached.
    """
    if requirement.is_empty:
        return AccessDecision.allow()

    if user_id is None or farm_id is None:
        return AccessDecision.deny(DENY_MISSING_CONTEXT, "missing identity or farm context")

    role_id, granted = await resolve_membership_permissions(db, user_id, farm_id)
    if role_id is None:
        logger.debug("authorize deny user=%s farm=%s: not a member", user_id, farm_id)
        return AccessDecision.deny(DENY_NOT_MEMBER, "not a member of farm")

    missing = requirement.missing_from(granted)
    if missing:
        logger.debug("authorize deny user=%s farm=%s: missing %s", user_id, farm_id, missing)
        return AccessDecision.deny(
            DENY_MISSING_PERMISSION,
            f"missing permission: {', '.join(missing)}",
            role_id=role_id,
            missing=missing,
        )

    return AccessDecision.allow(role_id=role_id)
