"""Display and UI configuration constants."""

# Window size in pixels for the pygame viewer
SCREEN_WIDTH = 1280
SCREEN_HEIGHT = 900

# The frame rate of the render loop, in frames per second
FRAME_RATE = 60

# Layout of one level row
ROW_PADDING = 12
VIDEO_PANEL_RATIO = 2 / 3  # Share of the row width given to the clip panel
LABEL_WIDTH = 190
BAR_HEIGHT = 8
BAR_SEGMENT_COUNT = 20
BAR_SEGMENT_GAP = 2

# Colors
BACKGROUND_COLOR = (0, 0, 0)
PANEL_COLOR = (17, 24, 39)  # Clip panel placeholder
BORDER_COLOR = (31, 41, 55)
DEAD_BORDER_COLOR = (75, 85, 99)
ACTIVATION_BORDER_COLOR = (239, 68, 68)  # Red while the trigger flag is up
LABEL_COLOR = (156, 163, 175)
VALUE_COLOR = (255, 255, 255)
TITLE_COLOR = (255, 255, 255)
SUBTITLE_COLOR = (107, 114, 128)
BAR_BACKGROUND_COLOR = (31, 41, 55)
BAR_FILL_COLOR = (255, 255, 255)
BAR_DEAD_COLOR = (75, 85, 99)
DEBUG_TEXT_COLOR = (234, 179, 8)

STATE_BADGE_COLORS = {
    "baseline": (34, 197, 94),
    "elevated": (239, 68, 68),
    "terminal": (107, 114, 128),
    "other": (59, 130, 246),
}

# Clip directory used by the playback selector
VIDEO_ROOT = "videos"

# Width of separator lines in console output
SEPARATOR_WIDTH = 60
