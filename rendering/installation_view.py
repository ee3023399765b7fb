"""Pygame renderer for the installation.

Draws one row per level: the clip panel on the left, then the level title,
its state badge and a segmented bar per data point. A debug overlay shows
frame timing, lerp rates, the coupling rules in effect and the recent
transition history.
"""

from typing import List, Mapping, Optional, Sequence, Tuple

import pygame

from biocascade.config.display import (
    ACTIVATION_BORDER_COLOR,
    BACKGROUND_COLOR,
    BAR_BACKGROUND_COLOR,
    BAR_DEAD_COLOR,
    BAR_FILL_COLOR,
    BAR_HEIGHT,
    BAR_SEGMENT_COUNT,
    BAR_SEGMENT_GAP,
    BORDER_COLOR,
    DEAD_BORDER_COLOR,
    DEBUG_TEXT_COLOR,
    LABEL_COLOR,
    LABEL_WIDTH,
    PANEL_COLOR,
    ROW_PADDING,
    STATE_BADGE_COLORS,
    SUBTITLE_COLOR,
    TITLE_COLOR,
    VALUE_COLOR,
    VIDEO_PANEL_RATIO,
)
from biocascade.events import TransitionEvent
from biocascade.levels import DataPoint, LevelDefinition, LevelRegistry
from biocascade.simulation.coupling import CouplingEngine
from biocascade.simulation.engine import FrameSnapshot
from biocascade.states import TransitionGraph
from rendering.playback import ClipSelection, PosterCache, select_clip

DIM_ALPHA = 150


def segments_lit(value: float, value_range: float, segments: int = BAR_SEGMENT_COUNT) -> int:
    """Number of bar segments to light for a value (clamped to the bar)."""
    if value_range <= 0:
        return 0
    ratio = max(0.0, min(1.0, value / value_range))
    return int(round(ratio * segments))


class InstallationRenderer:
    """Renders FrameSnapshots onto a pygame surface.

    Attributes:
        screen: Pygame surface to render to
        show_debug: Whether the debug overlay is drawn
    """

    def __init__(
        self,
        screen: pygame.Surface,
        registry: LevelRegistry,
        graph: TransitionGraph,
        value_range: float,
        coupling: Optional[CouplingEngine] = None,
    ) -> None:
        self.screen = screen
        self.registry = registry
        self.graph = graph
        self.value_range = value_range
        self.coupling = coupling
        self.show_debug = False

        self.title_font = pygame.font.Font(None, 30)
        self.label_font = pygame.font.Font(None, 20)
        self.debug_font = pygame.font.Font(None, 18)
        self.posters = PosterCache()

    def row_rects(self) -> List[pygame.Rect]:
        width, height = self.screen.get_size()
        row_height = height // max(len(self.registry), 1)
        return [pygame.Rect(0, i * row_height, width, row_height) for i in range(len(self.registry))]

    def draw(
        self,
        snapshot: FrameSnapshot,
        history: Sequence[TransitionEvent] = (),
        lerp_rates: Optional[Mapping[DataPoint, float]] = None,
        fps: float = 0.0,
    ) -> None:
        """Draw one frame and flip the display."""
        self.screen.fill(BACKGROUND_COLOR)
        for level, rect in zip(self.registry, self.row_rects()):
            self._draw_row(level, rect, snapshot)

        if self.show_debug:
            self._draw_debug(snapshot, history, lerp_rates or {}, fps)

        pygame.display.flip()

    def _draw_row(self, level: LevelDefinition, rect: pygame.Rect, snapshot: FrameSnapshot) -> None:
        state = snapshot.states[level.level_id]
        terminal = self.graph.is_terminal(state)
        clip = select_clip(level.level_id, state, self.graph, snapshot.transitioning.get(level.level_id))

        panel = pygame.Rect(rect.x, rect.y, int(rect.width * VIDEO_PANEL_RATIO), rect.height)
        self._draw_clip_panel(panel.inflate(-ROW_PADDING, -ROW_PADDING), clip)

        info = pygame.Rect(panel.right, rect.y, rect.width - panel.width, rect.height)
        info = info.inflate(-ROW_PADDING * 2, -ROW_PADDING)
        self._draw_header(level, state, info)
        self._draw_bars(level, snapshot, info, terminal)

        if snapshot.activation_active:
            border_color, border_width = ACTIVATION_BORDER_COLOR, 3
        elif terminal:
            border_color, border_width = DEAD_BORDER_COLOR, 1
        else:
            border_color, border_width = BORDER_COLOR, 1
        pygame.draw.rect(self.screen, border_color, rect, border_width)

    def _draw_clip_panel(self, rect: pygame.Rect, clip: ClipSelection) -> None:
        poster = self.posters.get(clip.poster_path, rect.size)
        if poster is not None:
            self.screen.blit(poster, rect.topleft)
        else:
            pygame.draw.rect(self.screen, PANEL_COLOR, rect)
            name = self.label_font.render(clip.path, True, SUBTITLE_COLOR)
            self.screen.blit(name, name.get_rect(center=rect.center))

        if clip.dimmed:
            shade = pygame.Surface(rect.size)
            shade.fill((0, 0, 0))
            shade.set_alpha(DIM_ALPHA)
            self.screen.blit(shade, rect.topleft)

    def _draw_header(self, level: LevelDefinition, state, rect: pygame.Rect) -> None:
        title = self.title_font.render(level.title, True, TITLE_COLOR)
        self.screen.blit(title, rect.topleft)

        badge_text = self.label_font.render(state.value.upper(), True, BACKGROUND_COLOR)
        badge = badge_text.get_rect(topright=(rect.right, rect.top)).inflate(12, 6)
        pygame.draw.rect(self.screen, STATE_BADGE_COLORS[self.graph.role(state)], badge, border_radius=4)
        self.screen.blit(badge_text, badge_text.get_rect(center=badge.center))

        subtitle = f"{level.subtitle}  ({level.scale})" if level.scale else level.subtitle
        sub = self.label_font.render(subtitle, True, SUBTITLE_COLOR)
        self.screen.blit(sub, (rect.left, rect.top + title.get_height() + 2))

    def _draw_bars(self, level: LevelDefinition, snapshot: FrameSnapshot, rect: pygame.Rect, terminal: bool) -> None:
        top = rect.top + 52
        channels = level.channels()
        spacing = max((rect.bottom - top) // max(len(channels), 1), BAR_HEIGHT + 4)
        bar_width = rect.width - LABEL_WIDTH - 50
        fill_color = BAR_DEAD_COLOR if terminal else BAR_FILL_COLOR

        for i, point in enumerate(channels):
            y = top + i * spacing
            value = snapshot.values.get(point, 0.0)
            label = self.label_font.render(point.name, True, LABEL_COLOR)
            self.screen.blit(label, (rect.left, y - 4))
            self._draw_segments(rect.left + LABEL_WIDTH, y, bar_width, value, fill_color)

            unit = level.unit_for(point.name)
            text = f"{value:.0f}{' ' + unit if unit else ''}"
            number = self.label_font.render(text, True, VALUE_COLOR)
            self.screen.blit(number, number.get_rect(topright=(rect.right, y - 4)))

    def _draw_segments(self, x: int, y: int, width: int, value: float, fill_color: Tuple[int, int, int]) -> None:
        segment_width = (width - BAR_SEGMENT_GAP * (BAR_SEGMENT_COUNT - 1)) / BAR_SEGMENT_COUNT
        lit = segments_lit(value, self.value_range)
        for i in range(BAR_SEGMENT_COUNT):
            color = fill_color if i < lit else BAR_BACKGROUND_COLOR
            sx = x + int(i * (segment_width + BAR_SEGMENT_GAP))
            pygame.draw.rect(self.screen, color, (sx, y, max(int(segment_width), 1), BAR_HEIGHT))

    def coupling_lines(self, snapshot: FrameSnapshot) -> List[str]:
        """Coupling rules currently in effect, one line each."""
        if self.coupling is None:
            return []
        active = self.coupling.active_rules(snapshot.states)
        return [f"couplings: {len(active)} active"] + [f"  {rule}" for rule in active]

    def _draw_debug(
        self,
        snapshot: FrameSnapshot,
        history: Sequence[TransitionEvent],
        lerp_rates: Mapping[DataPoint, float],
        fps: float,
    ) -> None:
        lines = [
            f"FPS {fps:.1f}  frame {snapshot.frame}",
            f"sequence={'on' if snapshot.sequence_active else 'off'}  "
            f"activation={'on' if snapshot.activation_active else 'off'}  "
            f"autonomous={'paused' if snapshot.autonomous_suspended else 'running'}",
        ]
        lines.extend(self.coupling_lines(snapshot))
        for level in self.registry:
            rates = [lerp_rates[p] for p in level.channels() if p in lerp_rates]
            if rates:
                lines.append(f"{level.level_id}: lerp {min(rates):.3f}-{max(rates):.3f}")
        lines.append("recent transitions:")
        for event in history:
            marker = " (forced)" if event.forced else ""
            lines.append(f"  #{event.frame} {event.level_id} {event.transition_name}{marker}")

        line_height = self.debug_font.get_linesize()
        overlay = pygame.Surface((360, line_height * len(lines) + 12))
        overlay.fill((0, 0, 0))
        overlay.set_alpha(200)
        self.screen.blit(overlay, (8, 8))
        for i, line in enumerate(lines):
            text = self.debug_font.render(line, True, DEBUG_TEXT_COLOR)
            self.screen.blit(text, (14, 14 + i * line_height))
