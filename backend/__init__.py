"""HTTP backend for the installation.

Serves the engine's state and accepts triggers, spikes and debug
overrides from remote controllers.
"""
