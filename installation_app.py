import logging
import random
import time
from typing import List, Optional

import pygame

from biocascade.config.display import FRAME_RATE, SCREEN_HEIGHT, SCREEN_WIDTH, SEPARATOR_WIDTH
from biocascade.config.installation_config import InstallationConfig
from biocascade.config.presets import get_preset
from biocascade.events import TransitionEvent
from biocascade.simulation.engine import InstallationEngine
from biocascade.trigger import ButtonDebouncer
from rendering.installation_view import InstallationRenderer

logger = logging.getLogger(__name__)

SPIKE_LEVEL = "predator"
SPIKE_DATA_POINT = "Hunger"
SPIKE_VALUE = 95.0
KILL_LEVEL = "individual"
JOYSTICK_TRIGGER_BUTTON = 0


class InstallationApp:
    """Pygame viewer for one installation.

    Attributes:
        engine: The installation engine driven once per rendered frame
        screen: Pygame display surface
        clock: Pygame clock for frame rate
        renderer: Draws the level rows and debug overlay
        joysticks: Connected controllers polled for the trigger button
    """

    def __init__(self, config: InstallationConfig, seed: Optional[int] = None) -> None:
        self.engine = InstallationEngine(config, rng=random.Random(seed))
        self.clock: pygame.time.Clock = pygame.time.Clock()
        self.screen: Optional[pygame.Surface] = None
        self.renderer: Optional[InstallationRenderer] = None
        self.joysticks: List[pygame.joystick.JoystickType] = []
        self.debouncer = ButtonDebouncer(config.sequence.min_press_seconds)
        self.engine.subscribe(self.on_transition)

    def setup(self) -> None:
        """Open the window and detect controllers."""
        self.screen = pygame.display.set_mode((SCREEN_WIDTH, SCREEN_HEIGHT))
        pygame.display.set_caption(f"BioCascade - {self.engine.config.name}")
        self.renderer = InstallationRenderer(
            self.screen,
            self.engine.registry,
            self.engine.machine.graph,
            self.engine.timing.value_range,
            coupling=self.engine.coupling,
        )
        pygame.joystick.init()
        self.joysticks = [pygame.joystick.Joystick(i) for i in range(pygame.joystick.get_count())]
        for joystick in self.joysticks:
            logger.info("Controller connected: %s", joystick.get_name())

    def on_transition(self, event: TransitionEvent) -> None:
        logger.info(
            "%s: %s -> %s (%s)", event.level_id, event.from_state.value, event.to_state.value, event.kind.value
        )

    def kill_level(self) -> None:
        """Send one level (the individual, when present) to the terminal state.

        A validated transition, so it plays the clip and is refused once the
        level is already terminal.
        """
        graph = self.engine.machine.graph
        if not graph.terminal:
            logger.info("Preset %s has no terminal state", self.engine.config.name)
            return
        level_ids = self.engine.registry.level_ids
        level_id = KILL_LEVEL if KILL_LEVEL in level_ids else level_ids[len(level_ids) // 2]
        terminal = sorted(graph.terminal, key=lambda s: s.value)[0]
        self.engine.transition(level_id, terminal)

    def handle_events(self) -> bool:
        """Handle keyboard input; returns False to quit."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_SPACE:
                    self.engine.trigger()
                elif event.key == pygame.K_s:
                    self.engine.inject_spike(SPIKE_LEVEL, SPIKE_DATA_POINT, SPIKE_VALUE)
                elif event.key == pygame.K_d:
                    if self.renderer is not None:
                        self.renderer.show_debug = not self.renderer.show_debug
                elif event.key == pygame.K_1:
                    self.engine.transition_all(self.engine.machine.graph.baseline)
                elif event.key == pygame.K_2:
                    self.engine.transition_all(self.engine.machine.graph.elevated)
                elif event.key == pygame.K_3:
                    self.kill_level()
                elif event.key == pygame.K_r:
                    self.engine.reset()
                elif event.key == pygame.K_ESCAPE:
                    return False
        return True

    def poll_controllers(self) -> None:
        pressed = any(js.get_numbuttons() > JOYSTICK_TRIGGER_BUTTON and js.get_button(JOYSTICK_TRIGGER_BUTTON)
                      for js in self.joysticks)
        if self.debouncer.update(pressed, time.monotonic()):
            self.engine.trigger()

    def run(self) -> None:
        """Run the viewer until the window closes."""
        self.setup()

        print("=" * SEPARATOR_WIDTH)
        print(f"BIOCASCADE - {self.engine.config.name.upper()}")
        print("=" * SEPARATOR_WIDTH)
        print("Controls:")
        print("  SPACE - Trigger the sequence (gamepad button 0 too)")
        print("  S     - Spike predator hunger")
        print("  D     - Toggle debug overlay")
        print("  1 / 2 - All levels to baseline / elevated")
        print("  3     - Kill one level")
        print("  R     - Reset")
        print("  ESC   - Quit")
        print("=" * SEPARATOR_WIDTH)

        while self.handle_events():
            self.poll_controllers()
            snapshot = self.engine.tick()
            self.renderer.draw(
                snapshot,
                history=self.engine.history,
                lerp_rates=self.engine.simulator.lerp_rates,
                fps=self.clock.get_fps(),
            )
            self.clock.tick(FRAME_RATE)

        print(f"Stopped after {self.engine.frame} frames. Goodbye!")


def main(preset: str = "cascade", seed: Optional[int] = None) -> None:
    """Entry point for the viewer."""
    pygame.init()
    app = InstallationApp(get_preset(preset), seed=seed)
    try:
        app.run()
    finally:
        pygame.quit()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
