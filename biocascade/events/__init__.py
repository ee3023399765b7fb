"""Events module for state-change dispatch.

This module provides the EventBus for decoupling the state machine from its
subscribers, plus typed domain event definitions.
"""

from biocascade.events.domain_events import (
    LevelsResetEvent,
    SequenceEndedEvent,
    SequenceStartedEvent,
    TransitionEvent,
)
from biocascade.events.event_bus import EventBus, Unsubscribe

__all__ = [
    "EventBus",
    "LevelsResetEvent",
    "SequenceEndedEvent",
    "SequenceStartedEvent",
    "TransitionEvent",
    "Unsubscribe",
]
