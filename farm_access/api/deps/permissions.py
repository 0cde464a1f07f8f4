from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from farm_access.api.deps.auth import get_current_user
from farm_access.api.deps.farm import get_selected_farm_id
from farm_access.auth.permissions import is_known_permission
from farm_access.core.errors import ForbiddenError
from farm_access.core.farm_rbac import PermissionRequirement, authorize
from farm_access.db.session import get_db
from farm_access.models.user import User


@dataclass(frozen=True)
class FarmContext:
    """What a guarded route receives once the resolver has allowed the call."""

    user: User
    farm_id: int
    role_id: Optional[int]


def require_permissions(
    *required: str,
    any_of: Optional[Sequence[Iterable[str]]] = None,
) -> Callable:
    """
    Declare the permissions a route needs in the selected farm.

      require_permissions("A", "B")              -> A and B
      require_permissions(any_of=[{"A"}, {"B"}]) -> A, or else B

    The returned dependency exposes `.requirement` and consults the resolver on
    every request before the route body runs.
    """
    if required and any_of:
        raise ValueError("Pass either positional permissions or any_of, not both")

    requirement = (
        PermissionRequirement.any_of(*any_of) if any_of else PermissionRequirement.all_of(*required)
    )
    unknown = sorted(
        name for alt in requirement.alternatives for name in alt if not is_known_permission(name)
    )
    if unknown:
        raise ValueError(f"Unknown permission(s): {unknown}")

    async def _checker(
        db: AsyncSession = Depends(get_db),
        user: User = Depends(get_current_user),
        farm_id: Optional[int] = Depends(get_selected_farm_id),
    ) -> FarmContext:
        decision = await authorize(db, user.id, farm_id, requirement)
        if not decision.allowed:
            raise ForbiddenError(
                decision.reason or "forbidden",
                code=decision.code,
                extra={"missing": list(decision.missing)} if decision.missing else None,
            )
        return FarmContext(user=user, farm_id=farm_id, role_id=decision.role_id)

    _checker.requirement = requirement  # type: ignore[attr-defined]
    return _checker
