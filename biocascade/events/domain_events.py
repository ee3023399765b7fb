"""Domain event definitions published by the installation core.

Events are data-only (frozen dataclasses) and carry all context a
subscriber needs, so renderers never have to call back into the core while
handling one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from biocascade.states import TransitionKind


@dataclass(frozen=True)
class TransitionEvent:
    """A level committed a state change.

    Attributes:
        level_id: Level that changed
        from_state: State before the change
        to_state: State after the change
        kind: What caused the change
        transition_name: ``FROM_TO_TO`` name, selects the transition clip
        timestamp: Wall-clock time (``time.time()``) of the change
        frame: Engine frame when the change happened
        play_transition: Whether the renderer should play the transition clip
    """

    level_id: str
    from_state: Enum
    to_state: Enum
    kind: TransitionKind
    transition_name: str
    timestamp: float
    frame: int = 0
    play_transition: bool = True

    @property
    def forced(self) -> bool:
        """True for changes that bypassed the transition graph."""
        return self.kind in (TransitionKind.FORCED, TransitionKind.SEQUENCE)

    def to_dict(self) -> dict[str, Any]:
        return {
            "level_id": self.level_id,
            "from_state": self.from_state.value,
            "to_state": self.to_state.value,
            "kind": self.kind.value,
            "transition": self.transition_name,
            "timestamp": self.timestamp,
            "frame": self.frame,
            "forced": self.forced,
            "play_transition": self.play_transition,
        }


@dataclass(frozen=True)
class LevelsResetEvent:
    """Every level was returned to baseline and history cleared."""

    level_ids: tuple[str, ...]
    baseline: Enum
    timestamp: float


@dataclass(frozen=True)
class SequenceStartedEvent:
    """The trigger controller accepted a trigger and began a sequence."""

    steps: tuple[str, ...]
    timestamp: float


@dataclass(frozen=True)
class SequenceEndedEvent:
    """A sequence finished (or was cancelled) and evaluation resumed.

    Attributes:
        completed: False when the sequence was cancelled before its end
    """

    completed: bool
    timestamp: float
