"""Pygame presentation layer for the installation viewer."""
