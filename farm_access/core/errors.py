# farm_access/core/errors.py
from __future__ import annotations

from typing import Any, Optional


class FarmAccessError(Exception):
    """
    Base for failures raised by the authorization & membership core.
    The HTTP layer maps subclasses to status codes (see farm_access.api.errors).
    """

    code: str = "farm_access_error"

    def __init__(self, message: str, *, code: Optional[str] = None, extra: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.extra = dict(extra or {})

    def to_detail(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.extra}


class NotFoundError(FarmAccessError):
    code = "not_found"


class ForbiddenError(FarmAccessError):
    code = "forbidden"


class ConflictError(FarmAccessError):
    code = "conflict"
