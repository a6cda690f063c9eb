"""
CREator web server.

A FastAPI server that lets the CREator frontend write generated workflow
files into a local cre-orchestrator checkout, store the deployment key,
and run `cre workflow simulate`.

In production mode the filesystem endpoints are replaced by stubs that
answer 501 and point users at "Export Flow"; hackathon mode keeps them
enabled regardless.

Usage:
    creator-backend serve                       # localhost:3001
    creator-backend serve -p 4000               # Custom port
    creator-backend serve --env production      # Locked-down mode
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .envfile import ensure_env_file, read_private_key_status, write_private_key
from .errors import EnvFileError, FileWriteError, ValidationError
from .files import write_file
from .runtime import FILE_ENDPOINTS, OrchestratorConfig, enabled_endpoints
from .simulate import SimulationRunner

logger = logging.getLogger(__name__)

API_NAME = "CREator Backend API"

PRODUCTION_DISABLED = {
    "error": "Not available in production",
    "message": (
        "This feature requires local filesystem access. Use \"Export Flow\" "
        "to download your project and test locally with CRE CLI."
    ),
    "documentation": "https://docs.chain.link/cre",
}


# =============================================================================
# Pydantic Models
# =============================================================================


class WriteFileRequest(BaseModel):
    """Write a generated file into the orchestrator tree."""

    path: str | None = None
    content: str | None = None


class SimulateRequest(BaseModel):
    """
    Run a simulation.

    `orchestratorPath` is accepted for older frontends but ignored; the
    server always simulates in its configured orchestrator directory.
    """

    model_config = ConfigDict(populate_by_name=True)

    orchestrator_path: str | None = Field(default=None, alias="orchestratorPath")


class SetEnvConfigRequest(BaseModel):
    """Store the deployment private key."""

    model_config = ConfigDict(populate_by_name=True)

    private_key: str | None = Field(default=None, alias="privateKey")


def get_config(request: Request) -> OrchestratorConfig:
    return request.app.state.config


def get_runner(request: Request) -> SimulationRunner:
    return request.app.state.runner


# =============================================================================
# Always-on Routes
# =============================================================================


core_router = APIRouter()


@core_router.get("/health")
async def health(config: OrchestratorConfig = Depends(get_config)):
    """Liveness check."""
    if config.file_operations_enabled:
        message = f"Backend is running in {config.environment_mode.value} mode."
    else:
        message = "Backend is running. File operations disabled in production."
    return {
        "status": "ok",
        "environment": config.environment_mode.value,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@core_router.get("/api/info")
async def info(config: OrchestratorConfig = Depends(get_config)):
    """Static API metadata and the endpoints enabled in this mode."""
    return {
        "name": API_NAME,
        "version": __version__,
        "environment": config.environment_mode.value,
        "hackathonMode": config.hackathon_mode,
        "availableEndpoints": enabled_endpoints(config),
    }


# =============================================================================
# File Operation Routes
# =============================================================================


files_router = APIRouter(prefix="/api")


@files_router.post("/write-file")
async def write_file_endpoint(
    request: WriteFileRequest,
    config: OrchestratorConfig = Depends(get_config),
):
    """Write `content` to `path` (relative to the orchestrator root)."""
    if not request.path or request.content is None:
        return JSONResponse(status_code=400, content={"error": "Missing path or content"})

    try:
        written = await asyncio.to_thread(
            write_file, config.orchestrator_root, request.path, request.content
        )
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except FileWriteError as e:
        logger.error("Error writing file %s: %s", request.path, e)
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to write file", "message": str(e)},
        )

    return {
        "success": True,
        "message": f"File written: {written}",
        "path": str(written),
    }


@files_router.post("/simulate")
async def simulate_endpoint(
    request: SimulateRequest | None = None,
    config: OrchestratorConfig = Depends(get_config),
    runner: SimulationRunner = Depends(get_runner),
):
    """
    Run `cre workflow simulate` in the orchestrator directory.

    Always answers 200; a failed simulation is reported as success=false
    with whatever output was captured.
    """
    if request and request.orchestrator_path:
        if request.orchestrator_path != str(config.orchestrator_root):
            logger.info(
                "Ignoring client orchestratorPath %r, using %s",
                request.orchestrator_path,
                config.orchestrator_root,
            )

    result = await runner.run()
    return result.to_dict()


@files_router.get("/get-env-config")
async def get_env_config(config: OrchestratorConfig = Depends(get_config)):
    """Report whether a private key is configured."""
    status = await asyncio.to_thread(read_private_key_status, config.env_file)
    return status.to_dict()


@files_router.post("/set-env-config")
async def set_env_config(
    request: SetEnvConfigRequest,
    config: OrchestratorConfig = Depends(get_config),
):
    """Validate and store the deployment private key."""
    try:
        await asyncio.to_thread(write_private_key, config.env_file, request.private_key)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except EnvFileError as e:
        logger.error("Error setting env config: %s", e)
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to save configuration", "message": str(e)},
        )

    return {"success": True, "message": "Private key configured successfully"}


async def file_operations_disabled():
    """Stand-in for file operations when running in production."""
    return JSONResponse(status_code=501, content=PRODUCTION_DISABLED)


disabled_router = APIRouter()
for _path in FILE_ENDPOINTS:
    disabled_router.add_api_route(
        _path,
        file_operations_disabled,
        methods=["GET"] if _path == "/api/get-env-config" else ["POST"],
    )


# =============================================================================
# Error Handlers
# =============================================================================


def _install_error_handlers(app: FastAPI, config: OrchestratorConfig) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Not found",
                    "message": f"Route {request.method} {request.url.path} does not exist",
                    "availableRoutes": enabled_endpoints(config),
                },
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "message": problems},
        )

    @app.exception_handler(Exception)
    async def server_error(request: Request, exc: Exception):
        logger.exception("Server error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": "An error occurred" if config.is_production else str(exc),
            },
        )


# =============================================================================
# FastAPI App
# =============================================================================


def create_app(config: OrchestratorConfig) -> FastAPI:
    """
    Build the FastAPI application for a resolved configuration.

    Args:
        config: Runtime configuration, fixed for the app's lifetime

    Returns:
        Configured FastAPI instance
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if config.file_operations_enabled:
            try:
                ensure_env_file(config)
            except EnvFileError as e:
                logger.warning("Could not create %s: %s", config.env_file, e)
            logger.info(
                "CREator backend starting in %s mode%s, file operations enabled",
                config.environment_mode.value,
                " (hackathon)" if config.hackathon_mode else "",
            )
            logger.info("Orchestrator path: %s", config.orchestrator_root)
        else:
            logger.info("CREator backend starting in production mode, file operations disabled")
        yield
        logger.info("Shutting down...")

    app = FastAPI(
        title=API_NAME,
        description="Local file and simulation bridge for the CREator frontend",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.runner = SimulationRunner(config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(core_router)
    if config.file_operations_enabled:
        app.include_router(files_router)
    else:
        app.include_router(disabled_router)

    _install_error_handlers(app, config)
    return app


# =============================================================================
# Server Runner
# =============================================================================


def run_server(config: OrchestratorConfig, log_level: str = "info") -> None:
    """
    Run the CREator web server.

    Args:
        config: Runtime configuration (host and port are taken from it)
        log_level: uvicorn log level
    """
    import uvicorn

    app = create_app(config)

    print("=" * 60)
    print(API_NAME)
    print("=" * 60)
    print(f"Server:      http://{config.host}:{config.port}")
    print(f"Environment: {config.environment_mode.value}")
    print(f"CORS origin: {', '.join(config.cors_origins)}")
    print(f"Started:     {datetime.now(timezone.utc).isoformat()}")
    print("=" * 60)
    print("Press Ctrl+C to stop")

    uvicorn.run(app, host=config.host, port=config.port, log_level=log_level)
