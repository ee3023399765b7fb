"""Installation endpoints: state queries, triggers, spikes and debug overrides."""

import logging
from typing import List

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from backend.installation_runner import InstallationRunner
from backend.models import (
    CommandResult,
    HealthData,
    LevelInfo,
    SnapshotData,
    SpikeRequest,
    StateRequest,
    TransitionEventData,
)
from biocascade.exceptions import SimulationError

logger = logging.getLogger(__name__)


def setup_router(runner: InstallationRunner) -> APIRouter:
    """Create the installation router bound to one runner.

    Endpoints:
        GET  /api/levels
        GET  /api/state
        GET  /api/history
        POST /api/trigger
        POST /api/levels/{level_id}/spike
        POST /api/levels/{level_id}/force
        POST /api/levels/{level_id}/transition
        POST /api/reset
    """
    router = APIRouter(prefix="/api", tags=["installation"])

    def _level_not_found(level_id: str) -> JSONResponse:
        return JSONResponse({"error": f"Level not found: {level_id}"}, status_code=404)

    @router.get("/levels", response_model=List[LevelInfo])
    async def list_levels():
        """Static level layout with current states and lerp rates."""
        return await runner.run_async(runner.levels)

    @router.get("/state", response_model=SnapshotData)
    async def get_state():
        """Current frame snapshot."""
        return await runner.run_async(runner.snapshot)

    @router.get("/history", response_model=List[TransitionEventData])
    async def get_history():
        """Recent transitions, newest first."""
        return await runner.run_async(runner.history)

    @router.post("/trigger", response_model=CommandResult)
    async def trigger():
        """Send one activation signal (debounced)."""
        accepted = await runner.run_async(runner.trigger)
        return CommandResult(accepted=accepted, message="" if accepted else "Trigger ignored")

    @router.post("/levels/{level_id}/spike", response_model=CommandResult)
    async def spike(level_id: str, request: SpikeRequest):
        """Push one channel to a value and hold it briefly."""
        if not runner.has_level(level_id):
            return _level_not_found(level_id)
        try:
            await runner.run_async(runner.spike, level_id, request.data_point, request.value)
        except SimulationError as e:
            return JSONResponse({"error": str(e)}, status_code=404)
        return CommandResult(accepted=True, message=f"{level_id}.{request.data_point}={request.value:g}")

    @router.post("/levels/{level_id}/transition", response_model=CommandResult)
    async def transition(level_id: str, request: StateRequest):
        """Request a validated state change."""
        if not runner.has_level(level_id):
            return _level_not_found(level_id)
        play = True if request.play_transition is None else request.play_transition
        try:
            result = await runner.run_async(runner.transition, level_id, request.state, play_transition=play)
        except SimulationError as e:
            return JSONResponse({"error": str(e)}, status_code=400)
        if result.is_err():
            return JSONResponse({"error": result.error}, status_code=409)
        return CommandResult(accepted=True, event=result.unwrap().to_dict())

    @router.post("/levels/{level_id}/force", response_model=CommandResult)
    async def force(level_id: str, request: StateRequest):
        """Debug override: set a state without consulting the graph."""
        if not runner.has_level(level_id):
            return _level_not_found(level_id)
        play = False if request.play_transition is None else request.play_transition
        try:
            result = await runner.run_async(runner.force_state, level_id, request.state, play_transition=play)
        except SimulationError as e:
            return JSONResponse({"error": str(e)}, status_code=400)
        if result.is_err():
            return JSONResponse({"error": result.error}, status_code=400)
        logger.info(f"Forced {level_id} to {request.state} via API")
        return CommandResult(accepted=True, event=result.unwrap().to_dict())

    @router.post("/reset", response_model=CommandResult)
    async def reset():
        """Return every level to baseline and clear history."""
        await runner.run_async(runner.reset)
        return CommandResult(accepted=True, message="Installation reset")

    return router


def setup_health_router(runner: InstallationRunner) -> APIRouter:
    """Liveness endpoint outside the /api prefix."""
    router = APIRouter(tags=["health"])

    @router.get("/health", response_model=HealthData)
    async def health():
        return runner.health()

    return router
