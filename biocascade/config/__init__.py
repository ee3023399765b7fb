"""Configuration package for the installation core.

Constants are grouped by concern (display, simulation, trigger, server);
``installation_config`` assembles them into the dataclasses consumed by the
engine and ``presets`` builds the two shipped installations.
"""
