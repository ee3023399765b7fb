"""The two shipped installations.

``cascade``: predator, flock, individual bird, flight muscle and molecular
motors. Each level activates on its own thresholds, excitement flows down
the scales through coupling rules, and any level can die.

``physiological``: predator, flock, heart, cell swarm and myosin. Nothing
activates on its own; a trigger drives every level through
Calm -> Excited -> Recovering -> Calm together.

Each factory returns a fresh config object, so callers may tweak timing or
rules without affecting anyone else.
"""

from typing import Callable, Dict

from biocascade.config.installation_config import (
    InstallationConfig,
    SequenceConfig,
    SequenceStep,
    TimingConfig,
)
from biocascade.config.trigger import (
    EXCITED_DWELL_SECONDS,
    PHYSIOLOGICAL_EXCITED_DWELL_SECONDS,
    RECOVERING_DWELL_SECONDS,
    SEQUENCE_SETTLE_SECONDS,
)
from biocascade.exceptions import ConfigurationError
from biocascade.levels import LevelDefinition
from biocascade.rules import threshold_rule
from biocascade.simulation.coupling import coupling
from biocascade.simulation.value_simulator import ValueProfile
from biocascade.states import (
    CascadeState,
    PhysiologicalState,
    create_cascade_graph,
    create_physiological_graph,
)

# Channels amplified when a level is excited
AMPLIFIED_KEYWORDS = ("Fear", "Energy", "Force", "ATP")

# Channels that keep a residual reading after death
RESIDUAL_KEYWORDS = ("Heat", "Lactic Acid")

CASCADE_LEVELS = (
    LevelDefinition(
        level_id="predator",
        title="PREDATOR",
        subtitle="Bird of prey in high-tension waiting",
        scale="~1 m",
        data_points=(
            "Hunger",
            "Energy",
            "Tilt/Orientation",
            "Prey Proximity",
            "Sensory Confidence",
            "Success Probability",
        ),
        units={"Tilt/Orientation": "deg", "Prey Proximity": "m"},
    ),
    LevelDefinition(
        level_id="flock",
        title="POPULATION",
        subtitle="Flock moving as one",
        scale="~100 m",
        data_points=(
            "Collective Energy",
            "Cohesion",
            "Variance",
            "Obstacles",
            "Signal Propagation Delay",
        ),
        units={"Signal Propagation Delay": "ms"},
    ),
    LevelDefinition(
        level_id="individual",
        title="INDIVIDUAL",
        subtitle="Single bird in flight",
        scale="~10 cm",
        data_points=(
            "Experience Level",
            "Fear Level",
            "Fatigue",
            "Calories Expended",
            "Neighbor Proximity",
            "Reaction Latency",
            "Survival Probability",
        ),
        units={"Calories Expended": "kcal", "Neighbor Proximity": "cm", "Reaction Latency": "ms"},
    ),
    LevelDefinition(
        level_id="muscle",
        title="ORGAN",
        subtitle="Muscle contracting",
        scale="~1 cm",
        data_points=(
            "Force Production",
            "Electrical Activation",
            "Intracellular Calcium",
            "Stiffness",
            "Lactic Acid",
            "Heat",
        ),
        units={"Force Production": "N", "Intracellular Calcium": "uM", "Heat": "C"},
    ),
    LevelDefinition(
        level_id="microscopic",
        title="MICROSCOPIC",
        subtitle="Molecular cross-bridge cycling",
        scale="~10 nm",
        data_points=(
            "Cross-bridge Attach/Detach",
            "ATP Consumption",
            "Binding Probability",
            "Molecular Fatigue",
            "Thermal Noise",
        ),
        units={"Cross-bridge Attach/Detach": "Hz"},
    ),
)

PHYSIOLOGICAL_LEVELS = (
    LevelDefinition(
        level_id="predator",
        title="PREDATOR",
        subtitle="Hawk launching from its perch",
        scale="~1 m",
        data_points=("Hunger", "Energy", "Focus", "Strike Readiness"),
    ),
    LevelDefinition(
        level_id="flock",
        title="POPULATION",
        subtitle="Flock scattering under threat",
        scale="~100 m",
        data_points=("Collective Energy", "Cohesion", "Alarm Spread", "Turn Rate"),
        units={"Turn Rate": "deg/s"},
    ),
    LevelDefinition(
        level_id="heart",
        title="ORGAN",
        subtitle="Heart of a fleeing bird",
        scale="~1 cm",
        data_points=("Heart Rate", "Stroke Volume", "Adrenaline", "Oxygen Demand"),
        units={"Heart Rate": "bpm", "Stroke Volume": "uL"},
    ),
    LevelDefinition(
        level_id="swarm",
        title="CELLULAR",
        subtitle="Mitochondria swarming to meet demand",
        scale="~10 um",
        data_points=("Mitochondrial Activity", "ATP Production", "Lactate", "Heat"),
    ),
    LevelDefinition(
        level_id="myosin",
        title="MOLECULAR",
        subtitle="Myosin heads pulling on actin",
        scale="~10 nm",
        data_points=("Cross-bridge Rate", "ATP Hydrolysis", "Binding Probability", "Thermal Noise"),
        units={"Cross-bridge Rate": "Hz"},
    ),
)


def cascade_config() -> InstallationConfig:
    """Build the threshold-driven predator cascade installation."""
    excited = CascadeState.EXCITED
    return InstallationConfig(
        name="cascade",
        levels=CASCADE_LEVELS,
        graph=create_cascade_graph(auto_revert=True),
        rules=(
            threshold_rule("predator", ("Hunger", ">", 80)),
            threshold_rule("flock", ("Cohesion", "<", 50), ("Variance", ">", 50)),
            threshold_rule("individual", ("Fear Level", ">", 40)),
            threshold_rule("muscle", ("Electrical Activation", ">", 60)),
            threshold_rule("microscopic", ("ATP Consumption", ">", 70)),
        ),
        couplings=(
            coupling("predator", excited, "flock", "Collective Energy", 15),
            coupling("predator", excited, "individual", "Fear Level", 20),
            coupling("flock", excited, "individual", "Neighbor Proximity", -10),
            coupling("flock", excited, "muscle", "Force Production", 10),
            coupling("individual", excited, "muscle", "Electrical Activation", 15),
            coupling("individual", excited, "muscle", "Lactic Acid", 8),
            coupling("muscle", excited, "microscopic", "ATP Consumption", 12),
            coupling("muscle", excited, "microscopic", "Cross-bridge Attach/Detach", 10),
            coupling("microscopic", excited, "muscle", "Heat", 5),
        ),
        value_profiles={
            CascadeState.NORMAL: ValueProfile(default=0.7),
            CascadeState.EXCITED: ValueProfile(default=1.2, overrides=((AMPLIFIED_KEYWORDS, 1.5),)),
            CascadeState.DEAD: ValueProfile(default=0.1, overrides=((RESIDUAL_KEYWORDS, 0.3),)),
        },
        timing=TimingConfig(),
        sequence=SequenceConfig(
            steps=(SequenceStep(CascadeState.EXCITED, EXCITED_DWELL_SECONDS),),
            require_all_baseline=False,
            settle_seconds=SEQUENCE_SETTLE_SECONDS,
        ),
        # Overlay: coupled values never feed the next smoothing step
        compound_coupling=False,
    )


def physiological_config() -> InstallationConfig:
    """Build the trigger-driven Calm/Excited/Recovering installation."""
    excited = PhysiologicalState.EXCITED
    recovering = PhysiologicalState.RECOVERING
    return InstallationConfig(
        name="physiological",
        levels=PHYSIOLOGICAL_LEVELS,
        graph=create_physiological_graph(),
        rules=(),
        couplings=(
            coupling("predator", excited, "flock", "Alarm Spread", 20),
            coupling("flock", excited, "heart", "Heart Rate", 25),
            coupling("heart", excited, "swarm", "Mitochondrial Activity", 15),
            coupling("swarm", excited, "myosin", "ATP Hydrolysis", 12),
            coupling("heart", recovering, "swarm", "Lactate", 10),
            coupling("myosin", excited, "swarm", "Heat", 5),
        ),
        value_profiles={
            PhysiologicalState.CALM: ValueProfile(default=0.5),
            PhysiologicalState.EXCITED: ValueProfile(
                default=1.2, overrides=((AMPLIFIED_KEYWORDS + ("Heart Rate", "Adrenaline"), 1.5),)
            ),
            PhysiologicalState.RECOVERING: ValueProfile(
                default=0.6, overrides=((("Lactate", "Heat", "Oxygen Demand"), 0.9),)
            ),
        },
        timing=TimingConfig(),
        sequence=SequenceConfig(
            steps=(
                SequenceStep(excited, PHYSIOLOGICAL_EXCITED_DWELL_SECONDS),
                SequenceStep(recovering, RECOVERING_DWELL_SECONDS),
            ),
        ),
        compound_coupling=False,
    )


PRESETS: Dict[str, Callable[[], InstallationConfig]] = {
    "cascade": cascade_config,
    "physiological": physiological_config,
}


def get_preset(name: str) -> InstallationConfig:
    """Build a preset by name.

    Raises:
        ConfigurationError: If no preset has that name
    """
    try:
        factory = PRESETS[name]
    except KeyError:
        raise ConfigurationError(f"Unknown preset {name!r}. Available: {sorted(PRESETS)}") from None
    return factory()
