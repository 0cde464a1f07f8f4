from __future__ import annotations

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from farm_access.core.security import bearer_scheme, decode_access_token
from farm_access.db.session import get_db
from farm_access.models.user import User


async def get_current_user(
    credentials=Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency for authenticated endpoints. Token issuance lives in the auth service;
    here we only trust a valid signature and an existing user.
    """
    user_id = decode_access_token(credentials.credentials)  # returns sub string

    try:
        user_pk = int(user_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

    user = await db.get(User, user_pk)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    return user
