"""Value simulation and evaluation cadence constants."""

# Upper bound of a freshly drawn target before the state multiplier
VALUE_RANGE = 100.0

# How often new random targets are drawn, in seconds
TARGET_INTERVAL_SECONDS = 0.8

# Lerp rate range; each data point draws its rate once from this range
LERP_RATE_MIN = 0.02  # Very slow
LERP_RATE_MAX = 0.3  # Very fast
DEFAULT_LERP_RATE = 0.1  # Used when a channel has no assigned rate

# Autonomous evaluation runs every N frames (~twice per second at 60 fps)
EVALUATION_INTERVAL_FRAMES = 30

# Frames an injected spike keeps its target pinned against regeneration
SPIKE_HOLD_FRAMES = 30

# Number of transition events kept for the debug overlay
HISTORY_LIMIT = 10

# Per-level transition history kept by each level's state machine
LEVEL_HISTORY_LIMIT = 100
