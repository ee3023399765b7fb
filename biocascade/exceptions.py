"""BioCascade exception hierarchy.

Centralised base classes so callers can catch wiring failures separately
from runtime failures of the frame loop.
"""


class BioCascadeError(Exception):
    """Root of all BioCascade exceptions."""


class ConfigurationError(BioCascadeError):
    """Invalid or inconsistent installation configuration.

    Raised at configuration-load time (never during evaluation) when a rule,
    coupling or sequence step references a level, data point or state that
    does not exist.
    """


class SimulationError(BioCascadeError):
    """Errors while driving the frame loop (runner, engine)."""
