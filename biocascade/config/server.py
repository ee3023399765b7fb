"""Backend server constants."""

DEFAULT_API_PORT = 8000
DEFAULT_PRESET = "cascade"
