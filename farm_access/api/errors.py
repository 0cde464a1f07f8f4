from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from farm_access.core.errors import ConflictError, FarmAccessError, ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: dict[type[FarmAccessError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    ConflictError: status.HTTP_409_CONFLICT,
}


def status_for(exc: FarmAccessError) -> int:
    for klass in type(exc).__mro__:
        if klass in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[klass]
    return status.HTTP_400_BAD_REQUEST


async def farm_access_error_handler(request: Request, exc: FarmAccessError) -> JSONResponse:
    code = status_for(exc)
    logger.info("%s %s -> %s %s: %s", request.method, request.url.path, code, exc.code, exc.message)
    return JSONResponse(status_code=code, content={"detail": exc.to_detail()})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FarmAccessError, farm_access_error_handler)
