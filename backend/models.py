"""Request and response models for the installation API."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class SpikeRequest(BaseModel):
    """Inject a stimulus into one channel of a level."""

    data_point: str = Field(..., description="Channel name, e.g. 'Hunger'")
    value: float = Field(95.0, description="Value to show and hold as the target")


class StateRequest(BaseModel):
    """Request a state by enum name or value (case-insensitive)."""

    state: str
    play_transition: Optional[bool] = None


class DataPointInfo(BaseModel):
    name: str
    unit: str = ""
    lerp_rate: float


class LevelInfo(BaseModel):
    """Static description of a level plus its current state."""

    level_id: str
    title: str
    subtitle: str
    scale: str
    state: str
    rule: Optional[str] = None
    data_points: List[DataPointInfo]


class TransitionEventData(BaseModel):
    """A committed state change."""

    level_id: str
    from_state: str
    to_state: str
    kind: str
    transition: str
    timestamp: float
    frame: int
    forced: bool
    play_transition: bool


class LevelSnapshot(BaseModel):
    state: str
    transition: Optional[str] = None
    values: Dict[str, float]


class SnapshotData(BaseModel):
    """What the renderer reads every frame."""

    preset: str
    frame: int
    running: bool
    levels: Dict[str, LevelSnapshot]
    activation_active: bool
    sequence_active: bool
    autonomous_suspended: bool


class CommandResult(BaseModel):
    """Outcome of a command that may be rejected without being an error."""

    accepted: bool
    message: str = ""
    event: Optional[TransitionEventData] = None


class HealthData(BaseModel):
    status: str
    preset: str
    running: bool
    frame: int
    actual_fps: float
    uptime_seconds: float
