"""Level states and the configuration-defined transition graph.

The installation ships two state sets that share one shape: a baseline
state, an elevated state, and either a terminal state (the cascade) or a
cooldown state that cycles back to baseline (the physiological variant).
Which edges exist, which states are terminal and whether a level may leave
the elevated state on its own are all properties of a ``TransitionGraph``
rather than of the state machine code.

Usage:
------
    graph = create_cascade_graph()
    graph.allows(CascadeState.NORMAL, CascadeState.EXCITED)  # True
    graph.allows(CascadeState.DEAD, CascadeState.NORMAL)  # False (terminal)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Generic, List, Mapping, Optional, Sequence, Tuple, TypeVar

from biocascade.exceptions import ConfigurationError

S = TypeVar("S", bound=Enum)


class CascadeState(Enum):
    """States of the predator cascade installation."""

    NORMAL = "Normal"  # Baseline loop
    EXCITED = "Excited"  # Elevated loop
    DEAD = "Dead"  # Terminal; the clip freezes


class PhysiologicalState(Enum):
    """States of the trigger-driven physiological installation."""

    CALM = "Calm"
    EXCITED = "Excited"
    RECOVERING = "Recovering"  # Cooldown before returning to calm


class TransitionKind(Enum):
    """What caused a committed state change."""

    AUTONOMOUS = "autonomous"  # Threshold evaluation
    MANUAL = "manual"  # Validated transition() request
    FORCED = "forced"  # force_state() debug override
    SEQUENCE = "sequence"  # Trigger controller step


# Reversible excitement, irreversible death from either living state
CASCADE_TRANSITIONS: Dict[CascadeState, List[CascadeState]] = {
    CascadeState.NORMAL: [CascadeState.EXCITED, CascadeState.DEAD],
    CascadeState.EXCITED: [CascadeState.NORMAL, CascadeState.DEAD],
    CascadeState.DEAD: [],  # Terminal state
}

# One-way cycle driven by the trigger controller
PHYSIOLOGICAL_TRANSITIONS: Dict[PhysiologicalState, List[PhysiologicalState]] = {
    PhysiologicalState.CALM: [PhysiologicalState.EXCITED],
    PhysiologicalState.EXCITED: [PhysiologicalState.RECOVERING],
    PhysiologicalState.RECOVERING: [PhysiologicalState.CALM],
}


@dataclass(frozen=True)
class TransitionGraph(Generic[S]):
    """Valid transitions and state roles for one installation.

    Attributes:
        baseline: State every level starts in and returns to on reset
        elevated: State autonomous activation moves a level into
        edges: Map of state -> list of valid target states
        terminal: States that can never be left through transition()
        autonomous_states: States in which threshold evaluation runs.
            None means "baseline and elevated".
        auto_revert: Whether an elevated level drops back to baseline on its
            own once its activation rule stops holding
    """

    baseline: S
    elevated: S
    edges: Mapping[S, Sequence[S]]
    terminal: FrozenSet[S] = frozenset()
    autonomous_states: Optional[FrozenSet[S]] = None
    auto_revert: bool = False

    @property
    def state_type(self) -> type:
        return type(self.baseline)

    @property
    def states(self) -> Tuple[S, ...]:
        return tuple(self.edges)

    @property
    def eligible_states(self) -> FrozenSet[S]:
        """States in which autonomous evaluation may run."""
        if self.autonomous_states is None:
            eligible = frozenset({self.baseline, self.elevated})
        else:
            eligible = frozenset(self.autonomous_states)
        return eligible - self.terminal

    def allows(self, from_state: S, to_state: S) -> bool:
        if from_state in self.terminal:
            return False
        return to_state in self.edges.get(from_state, ())

    def targets(self, from_state: S) -> List[S]:
        if from_state in self.terminal:
            return []
        return list(self.edges.get(from_state, ()))

    def is_terminal(self, state: S) -> bool:
        return state in self.terminal

    def role(self, state: S) -> str:
        """Display role of a state: baseline, elevated, terminal or other."""
        if state == self.baseline:
            return "baseline"
        if state == self.elevated:
            return "elevated"
        if state in self.terminal:
            return "terminal"
        return "other"

    def parse(self, raw: object) -> Optional[S]:
        """Resolve a state from an enum member, its value or its name.

        Matching on strings is case-insensitive, so ``"excited"``,
        ``"EXCITED"`` and ``"Excited"`` all resolve. Returns None when
        nothing matches.
        """
        if isinstance(raw, self.state_type):
            return raw if raw in self.edges else None
        if not isinstance(raw, str):
            return None
        wanted = raw.strip().lower()
        for state in self.edges:
            if wanted in (state.name.lower(), str(state.value).lower()):
                return state
        return None

    def validate(self) -> None:
        """Check the graph is internally consistent.

        Raises:
            ConfigurationError: If a referenced state is missing from the
                edge map, states mix enum types, or a terminal state has
                outgoing edges.
        """
        state_type = self.state_type
        for state in self.edges:
            if not isinstance(state, state_type):
                raise ConfigurationError(
                    f"Transition graph mixes state types: {state!r} is not a {state_type.__name__}"
                )
        for name, state in (("baseline", self.baseline), ("elevated", self.elevated)):
            if state not in self.edges:
                raise ConfigurationError(
                    f"{name} state {state} not in transition graph. "
                    f"Valid states: {[s.name for s in self.edges]}"
                )
        if self.baseline == self.elevated:
            raise ConfigurationError("Baseline and elevated states must differ")
        if self.baseline in self.terminal:
            raise ConfigurationError("Baseline state cannot be terminal")
        for source, targets in self.edges.items():
            for target in targets:
                if target not in self.edges:
                    raise ConfigurationError(
                        f"Edge {source.name} -> {target} points to a state outside the graph"
                    )
        for state in self.terminal:
            if state not in self.edges:
                raise ConfigurationError(f"Terminal state {state} not in transition graph")
            if self.edges[state]:
                raise ConfigurationError(
                    f"Terminal state {state.name} has outgoing edges: "
                    f"{[t.name for t in self.edges[state]]}"
                )
        for state in self.autonomous_states or ():
            if state not in self.edges:
                raise ConfigurationError(f"Autonomous state {state} not in transition graph")


def transition_name(from_state: Enum, to_state: Enum) -> str:
    """Name of a transition, e.g. ``NORMAL_TO_EXCITED``."""
    return f"{from_state.name}_TO_{to_state.name}"


def create_cascade_graph(auto_revert: bool = True) -> TransitionGraph[CascadeState]:
    """Create the Normal/Excited/Dead graph of the predator cascade.

    Args:
        auto_revert: Whether excited levels calm down on their own once
            their activation rule stops holding

    Returns:
        A TransitionGraph with Dead as the only terminal state
    """
    return TransitionGraph(
        baseline=CascadeState.NORMAL,
        elevated=CascadeState.EXCITED,
        edges=CASCADE_TRANSITIONS,
        terminal=frozenset({CascadeState.DEAD}),
        auto_revert=auto_revert,
    )


def create_physiological_graph() -> TransitionGraph[PhysiologicalState]:
    """Create the Calm -> Excited -> Recovering -> Calm cycle.

    No state is eligible for autonomous evaluation: every change in this
    installation comes from the trigger controller.
    """
    return TransitionGraph(
        baseline=PhysiologicalState.CALM,
        elevated=PhysiologicalState.EXCITED,
        edges=PHYSIOLOGICAL_TRANSITIONS,
        autonomous_states=frozenset(),
        auto_revert=False,
    )
