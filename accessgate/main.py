from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from accessgate.db.init_db import init_db
from accessgate.db.session import build_engine, build_sessionmaker
from accessgate.logging_config import configure_app_logging
from accessgate.routers import admin, documents, employees, health, leave_requests
from accessgate.security.config import load_privileges_config
from accessgate.security.errors import (
    AccessError,
    InsufficientPrivilege,
    InvalidAssignment,
    InvalidGrant,
    InvalidLevelDefinition,
    LevelInUse,
    LevelNotFound,
    LevelNumberConflict,
    PermissionDenied,
    StoreUnavailable,
    UnknownTemplate,
    UserContextNotFound,
    UserNotFound,
)
from accessgate.security.services import build_services
from accessgate.settings import Settings, get_settings

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[AccessError], int] = {
    UserContextNotFound: status.HTTP_401_UNAUTHORIZED,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    InsufficientPrivilege: status.HTTP_403_FORBIDDEN,
    LevelNotFound: status.HTTP_404_NOT_FOUND,
    UnknownTemplate: status.HTTP_404_NOT_FOUND,
    UserNotFound: status.HTTP_404_NOT_FOUND,
    LevelNumberConflict: status.HTTP_409_CONFLICT,
    LevelInUse: status.HTTP_409_CONFLICT,
    InvalidLevelDefinition: status.HTTP_400_BAD_REQUEST,
    InvalidGrant: status.HTTP_400_BAD_REQUEST,
    InvalidAssignment: status.HTTP_400_BAD_REQUEST,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def access_error_handler(request: Request, exc: AccessError) -> JSONResponse:
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error("Access error path=%s method=%s error=%s", request.url.path, request.method, exc)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=status_code, content={"detail": str(exc)}, headers=headers)


def create_app(settings: Settings | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        resolved = settings or get_settings()
        configure_app_logging(resolved.log_level)
        logger.info("App startup beginning")

        config_path = resolved.resolved_privileges_config_path()
        config = load_privileges_config(config_path, custom_level_threshold=resolved.custom_level_threshold)
        logger.info("Loaded privileges config: %s", config_path)

        engine = build_engine(resolved)
        session_factory = build_sessionmaker(engine)
        await init_db(engine, session_factory, config, seed_demo_data=resolved.seed_demo_data)
        logger.info("Database initialized (tables ensured + seed if needed)")

        app.state.access = build_services(session_factory, config, resolved)

        yield
        # Shutdown
        await engine.dispose()

    app = FastAPI(title="accessgate", lifespan=lifespan)
    app.add_exception_handler(AccessError, access_error_handler)

    app.include_router(health.router)
    app.include_router(employees.router)
    app.include_router(leave_requests.router)
    app.include_router(documents.router)
    app.include_router(admin.router)

    return app


app = create_app()
