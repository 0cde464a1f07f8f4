from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, status

SELECTED_FARM_HEADER = "X-Selected-Farm-Id"


def parse_farm_id(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    return value if value > 0 else None


async def get_selected_farm_id(
    x_selected_farm_id: Optional[str] = Header(default=None, alias=SELECTED_FARM_HEADER),
) -> Optional[int]:
    """
    Caller-declared farm selection. Absent or unparseable values resolve to None;
    the authorization resolver turns that into a denial.
    """
    return parse_farm_id(x_selected_farm_id)


async def require_selected_farm_id(
    x_selected_farm_id: Optional[str] = Header(default=None, alias=SELECTED_FARM_HEADER),
) -> int:
    """For unannotated routes that still need a farm selection."""
    farm_id = parse_farm_id(x_selected_farm_id)
    if farm_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{SELECTED_FARM_HEADER} header must be a positive integer",
        )
    return farm_id
