"""Trigger, sequence and clip timing constants (seconds)."""

# Ignore triggers arriving this soon after the last accepted one
TRIGGER_COOLDOWN_SECONDS = 1.0

# Hardware buttons must be held this long to count as a press
MIN_PRESS_SECONDS = 0.05

# Transient "activation active" flag shown by the renderer
ACTIVATION_FEEDBACK_SECONDS = 2.0

# Dwell times of the shipped sequences
EXCITED_DWELL_SECONDS = 8.0
PHYSIOLOGICAL_EXCITED_DWELL_SECONDS = 6.0
RECOVERING_DWELL_SECONDS = 4.0

# Autonomous evaluation stays off this long after a sequence returns to baseline
SEQUENCE_SETTLE_SECONDS = 3.0

# Length of the transition clip played when a level changes state
TRANSITION_CLIP_SECONDS = 3.0

# Analog axis/trigger value above which a gamepad input counts as pressed
ANALOG_PRESS_THRESHOLD = 0.5
