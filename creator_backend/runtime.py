"""
Runtime configuration for the CREator backend.

Resolves the orchestrator location, run mode and server settings from the
process environment. The resulting config is built once at startup and
handed to the app factory; nothing reads the environment after that.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3001
DEFAULT_HOST = "127.0.0.1"
DEFAULT_FRONTEND_URL = "http://localhost:5173"
DEFAULT_CRE_CLI = "cre"
DEFAULT_TARGET = "staging-settings"
DEFAULT_SIMULATION_TIMEOUT = 60.0
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024

# Extra origins the Vite dev server may come up on
DEV_FRONTEND_ORIGINS = ("http://localhost:5173", "http://localhost:5174")

BASE_ENDPOINTS = ["/health", "/api/info"]
FILE_ENDPOINTS = [
    "/api/write-file",
    "/api/simulate",
    "/api/get-env-config",
    "/api/set-env-config",
]

_TRUTHY = {"1", "true", "yes", "on"}


class EnvironmentMode(str, Enum):
    """Deployment mode of the backend."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"


@dataclass(frozen=True)
class OrchestratorConfig:
    """
    Process-wide configuration.

    Attributes:
        orchestrator_root: Directory holding the cre-orchestrator project
        environment_mode: development (full access) or production (locked down)
        hackathon_mode: Enable file operations even in production
        host: Interface to bind the HTTP server to
        port: Port to bind the HTTP server to
        frontend_url: Origin allowed by CORS
        cre_cli: Executable used to run simulations
        simulation_target: Value passed as --target to the simulator
        simulation_timeout: Wall-clock limit for one simulation (seconds)
        max_output_bytes: Cap on captured bytes per output stream
        serialize_simulations: Run at most one simulation at a time
        bootstrap_private_key: Key written when .env is first created
        bootstrap_target: Target written when .env is first created
    """

    orchestrator_root: Path
    environment_mode: EnvironmentMode = EnvironmentMode.DEVELOPMENT
    hackathon_mode: bool = False

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    frontend_url: str = DEFAULT_FRONTEND_URL

    # Simulation settings
    cre_cli: str = DEFAULT_CRE_CLI
    simulation_target: str = DEFAULT_TARGET
    simulation_timeout: float = DEFAULT_SIMULATION_TIMEOUT
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    serialize_simulations: bool = False

    # .env bootstrap
    bootstrap_private_key: str | None = None
    bootstrap_target: str | None = None

    @property
    def env_file(self) -> Path:
        """Path of the orchestrator's .env file."""
        return self.orchestrator_root / ".env"

    @property
    def is_production(self) -> bool:
        return self.environment_mode is EnvironmentMode.PRODUCTION

    @property
    def file_operations_enabled(self) -> bool:
        """Whether endpoints touching the local filesystem are served."""
        return not self.is_production or self.hackathon_mode

    @property
    def cors_origins(self) -> list[str]:
        """Origins accepted by the CORS middleware."""
        if self.is_production:
            return [self.frontend_url]
        origins = [self.frontend_url]
        for origin in DEV_FRONTEND_ORIGINS:
            if origin not in origins:
                origins.append(origin)
        return origins


def default_orchestrator_root() -> Path:
    """The cre-orchestrator checkout sitting next to this project."""
    project_dir = Path(__file__).resolve().parent.parent
    return project_dir.parent / "cre-orchestrator"


def _parse_mode(value: str | None) -> EnvironmentMode:
    if not value:
        return EnvironmentMode.DEVELOPMENT
    try:
        return EnvironmentMode(value.strip().lower())
    except ValueError:
        logger.warning("Unknown CREATOR_ENV %r, running in production mode", value)
        return EnvironmentMode.PRODUCTION


def _parse_flag(value: str | None) -> bool:
    return bool(value) and value.strip().lower() in _TRUTHY


def _parse_port(value: str | None) -> int:
    if not value:
        return DEFAULT_PORT
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid PORT %r, using %d", value, DEFAULT_PORT)
        return DEFAULT_PORT


def resolve_config(environ: Mapping[str, str] | None = None) -> OrchestratorConfig:
    """
    Build the runtime configuration from environment variables.

    Never fails: unset or malformed values fall back to defaults, and the
    orchestrator path is not required to exist yet.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Resolved OrchestratorConfig
    """
    env = os.environ if environ is None else environ

    root = env.get("ORCHESTRATOR_PATH")
    orchestrator_root = Path(root).expanduser() if root else default_orchestrator_root()

    return OrchestratorConfig(
        orchestrator_root=orchestrator_root,
        environment_mode=_parse_mode(env.get("CREATOR_ENV")),
        hackathon_mode=_parse_flag(env.get("CREATOR_HACKATHON_MODE")),
        host=env.get("HOST") or DEFAULT_HOST,
        port=_parse_port(env.get("PORT")),
        frontend_url=env.get("FRONTEND_URL") or DEFAULT_FRONTEND_URL,
        cre_cli=env.get("CRE_CLI") or DEFAULT_CRE_CLI,
        serialize_simulations=_parse_flag(env.get("CREATOR_SERIALIZE_SIMULATIONS")),
        bootstrap_private_key=env.get("CRE_ETH_PRIVATE_KEY") or None,
        bootstrap_target=env.get("CRE_TARGET") or None,
    )


def enabled_endpoints(config: OrchestratorConfig) -> list[str]:
    """Endpoints served in the configured mode."""
    if config.file_operations_enabled:
        return BASE_ENDPOINTS + FILE_ENDPOINTS
    return list(BASE_ENDPOINTS)
