"""Application factory and context for the installation API.

The app is built by create_app() rather than at import time. Runtime state
lives in an AppContext dataclass, so each test can build its own app with
its own runner.

Usage:
------
    # Production (settings from the environment)
    app = create_app()

    # Tests: no background thread, frames advanced by hand
    app = create_app(context=AppContext(preset="cascade", seed=42), start_runner=False)
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.installation_runner import InstallationRunner
from backend.logging_config import configure_logging
from biocascade import __version__
from biocascade.config.presets import get_preset
from biocascade.config.server import DEFAULT_API_PORT, DEFAULT_PRESET
from biocascade.exceptions import ConfigurationError


def _env_seed() -> Optional[int]:
    raw = os.getenv("BIOCASCADE_SEED")
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"BIOCASCADE_SEED must be an integer, got {raw!r}") from None


@dataclass
class AppContext:
    """Runtime context holding the application state."""

    preset: str = field(default_factory=lambda: os.getenv("BIOCASCADE_PRESET", DEFAULT_PRESET))
    seed: Optional[int] = field(default_factory=_env_seed)
    api_port: int = field(
        default_factory=lambda: int(os.getenv("BIOCASCADE_API_PORT", str(DEFAULT_API_PORT)))
    )
    allowed_origins: List[str] = field(
        default_factory=lambda: os.getenv("ALLOWED_ORIGINS", "*").split(",")
    )

    runner: Optional[InstallationRunner] = None
    server_start_time: float = field(default_factory=time.time)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("backend"))

    def build_runner(self) -> InstallationRunner:
        """Create the runner for the configured preset (once)."""
        if self.runner is None:
            self.runner = InstallationRunner(get_preset(self.preset), seed=self.seed)
        return self.runner


def create_app(
    *,
    preset: Optional[str] = None,
    seed: Optional[int] = None,
    context: Optional[AppContext] = None,
    start_runner: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        preset: Override the preset (default: BIOCASCADE_PRESET or "cascade")
        seed: Override the random seed (default: BIOCASCADE_SEED)
        context: Pre-configured AppContext (for testing)
        start_runner: Whether the lifespan starts the background frame loop

    Returns:
        Configured FastAPI application with the context on app.state.context

    Raises:
        ConfigurationError: If the preset is unknown or invalid
    """
    logger = configure_logging()

    if context is None:
        context = AppContext()
    if preset is not None:
        context.preset = preset
    if seed is not None:
        context.seed = seed
    context.logger = logger

    runner = context.build_runner()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = app.state.context
        try:
            if start_runner:
                ctx.runner.start()
            ctx.logger.info(f"LIFESPAN: {ctx.preset} installation ready (seed={ctx.seed})")
            yield
            ctx.logger.info("LIFESPAN: Received shutdown signal")
        finally:
            ctx.runner.stop()

    app = FastAPI(title="BioCascade Installation API", version=__version__, lifespan=lifespan)
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=context.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    _setup_routers(app, runner)
    return app


def _setup_routers(app: FastAPI, runner: InstallationRunner) -> None:
    from backend.routers import installation

    app.include_router(installation.setup_router(runner))
    app.include_router(installation.setup_health_router(runner))
