"""FastAPI application for the project planner."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .. import __version__
from ..config import PlannerSettings, resolve_settings
from ..container import Container
from ..plan.errors import PlanError
from .auth import require_api_key
from .catalog_api import create_catalog_router
from .plan_api import create_plan_router


def create_app(
    project_dir: Optional[Path] = None,
    settings: Optional[PlannerSettings] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        project_dir: Directory holding the `.project_planner/` state.
        settings: Pre-resolved settings; read from config and environment when omitted.
        enable_cors: Whether to enable CORS.

    Returns:
        Configured FastAPI app.
    """
    if settings is None:
        settings = resolve_settings(project_dir or Path("."))
    if settings.config_error:
        logger.warning("Ignoring unreadable config: {}", settings.config_error)

    app = FastAPI(
        title="Project Planner",
        description="Ordered per-project task plans",
        version=__version__,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    container = Container(settings.project_dir, settings=settings)
    app.state.settings = settings
    app.state.container = container

    @app.exception_handler(PlanError)
    async def handle_plan_error(request: Request, exc: PlanError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("{} {} failed: {}", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    guarded = [Depends(require_api_key)]
    app.include_router(create_catalog_router(lambda: container.catalog), dependencies=guarded)
    app.include_router(create_plan_router(lambda: container.plans), dependencies=guarded)

    logger.info(
        "Project planner ready (state: {}, auth: {}, strict ordering: {})",
        container.state_root,
        "on" if settings.auth_enabled else "off",
        settings.strict_ordering,
    )
    return app
