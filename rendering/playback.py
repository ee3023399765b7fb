"""Clip selection for the level panels.

Each level has a folder of clips under ``VIDEO_ROOT``:

    videos/<level_id>/<state>.mp4     looping loop for a state
    videos/<level_id>/transition.mp4  played once after a state change

Terminal states have no clip of their own; the elevated clip is shown
frozen and dimmed instead.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

import pygame

from biocascade.config.display import VIDEO_ROOT
from biocascade.states import TransitionGraph

TRANSITION_CLIP = "transition.mp4"
POSTER_EXTENSION = ".png"


@dataclass(frozen=True)
class ClipSelection:
    """What a level panel should show.

    Attributes:
        path: Clip path relative to the working directory
        loop: Whether the clip loops
        paused: Whether the clip is frozen on its current frame
        dimmed: Whether the panel is drawn at reduced brightness
        is_transition: Whether this is the one-shot transition clip
    """

    path: str
    loop: bool = True
    paused: bool = False
    dimmed: bool = False
    is_transition: bool = False

    @property
    def poster_path(self) -> str:
        """Still image shown in place of the clip by the pygame viewer."""
        return os.path.splitext(self.path)[0] + POSTER_EXTENSION


def clip_path(level_id: str, filename: str, root: str = VIDEO_ROOT) -> str:
    return "/".join((root.rstrip("/"), level_id, filename))


def select_clip(
    level_id: str,
    state: Enum,
    graph: TransitionGraph,
    transition: Optional[str] = None,
    root: str = VIDEO_ROOT,
) -> ClipSelection:
    """Pick the clip for a level.

    Args:
        level_id: Level to show
        state: Current state of the level
        graph: Transition graph the state belongs to
        transition: Name of the transition clip currently playing, if any
        root: Clip directory

    Returns:
        The clip selection for the panel
    """
    if transition is not None:
        return ClipSelection(clip_path(level_id, TRANSITION_CLIP, root), loop=False, is_transition=True)

    if graph.is_terminal(state):
        elevated = f"{graph.elevated.value.lower()}.mp4"
        return ClipSelection(clip_path(level_id, elevated, root), loop=False, paused=True, dimmed=True)

    return ClipSelection(clip_path(level_id, f"{state.value.lower()}.mp4", root))


class PosterCache:
    """Loads and caches poster frames; missing files map to None."""

    def __init__(self) -> None:
        self._cache: Dict[Tuple[str, Tuple[int, int]], Optional[pygame.Surface]] = {}

    def get(self, path: str, size: Tuple[int, int]) -> Optional[pygame.Surface]:
        key = (path, size)
        if key in self._cache:
            return self._cache[key]
        surface = None
        if os.path.exists(path):
            try:
                surface = pygame.transform.smoothscale(pygame.image.load(path).convert(), size)
            except pygame.error as e:
                raise SystemExit(f"Couldn't load poster: {path}") from e
        self._cache[key] = surface
        return surface

    def clear(self) -> None:
        self._cache.clear()
