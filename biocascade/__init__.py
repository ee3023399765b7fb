"""BioCascade: state machine and data engine for a five-level video installation.

Public entry points:
    InstallationEngine   per-frame tick driver
    get_preset           build a shipped installation configuration
"""

from biocascade.config.installation_config import InstallationConfig
from biocascade.config.presets import get_preset
from biocascade.events import TransitionEvent
from biocascade.exceptions import BioCascadeError, ConfigurationError, SimulationError
from biocascade.levels import DataPoint, LevelDefinition, LevelRegistry
from biocascade.simulation.engine import FrameSnapshot, InstallationEngine
from biocascade.states import CascadeState, PhysiologicalState, TransitionKind

__version__ = "0.3.0"

__all__ = [
    "BioCascadeError",
    "CascadeState",
    "ConfigurationError",
    "DataPoint",
    "FrameSnapshot",
    "InstallationConfig",
    "InstallationEngine",
    "LevelDefinition",
    "LevelRegistry",
    "PhysiologicalState",
    "SimulationError",
    "TransitionEvent",
    "TransitionKind",
    "get_preset",
]
