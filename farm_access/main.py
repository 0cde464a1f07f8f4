import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from farm_access.core.config import settings
import farm_access.models  # noqa: F401  # force model registration

from farm_access.api.errors import register_exception_handlers
from farm_access.api.v1.farms import router as farms_router
from farm_access.api.v1.farm_members import router as farm_members_router
from farm_access.api.v1.farm_invitations import router as farm_invitations_router
from farm_access.api.v1.roles import router as roles_router


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )


def create_application() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Farm Access API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/")
    def root():
        return {"status": "ok", "service": "farm-access"}

    # Routers
    app.include_router(farms_router, prefix="/api/v1")
    app.include_router(farm_members_router, prefix="/api/v1")
    app.include_router(farm_invitations_router, prefix="/api/v1")
    app.include_router(roles_router, prefix="/api/v1")

    return app


app = create_application()
