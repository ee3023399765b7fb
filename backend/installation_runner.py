"""Background installation runner thread."""

import asyncio
import functools
import logging
import random
import threading
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar

from biocascade.config.display import FRAME_RATE
from biocascade.config.installation_config import InstallationConfig
from biocascade.events import TransitionEvent
from biocascade.exceptions import SimulationError
from biocascade.result import Result
from biocascade.simulation.engine import InstallationEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATUS_LOG_INTERVAL_SECONDS = 5.0


class InstallationRunner:
    """Runs an InstallationEngine in a background thread.

    Every engine call, from the loop or from an HTTP handler, happens under
    ``self.lock``, so the engine keeps its single logical thread of control.
    """

    def __init__(
        self,
        config: InstallationConfig,
        seed: Optional[int] = None,
        fps: int = FRAME_RATE,
    ):
        """Initialize the runner.

        Args:
            config: Installation configuration
            seed: Optional random seed for deterministic lerp rates and targets
            fps: Target frame rate of the loop
        """
        self.config = config
        self.seed = seed
        self.engine = InstallationEngine(config, rng=random.Random(seed))

        self.running = False
        self.thread: Optional[threading.Thread] = None
        self.lock = threading.Lock()

        self.fps = fps
        self.frame_time = 1.0 / fps

        self.started_at = time.time()
        self.last_fps_time = time.time()
        self.fps_frame_count = 0
        self.current_actual_fps = 0.0

    @property
    def preset(self) -> str:
        return self.config.name

    def start(self) -> None:
        """Start the frame loop in a daemon thread (no-op if running)."""
        if not self.running:
            self.running = True
            self.thread = threading.Thread(target=self._run_loop, name="installation-loop", daemon=True)
            self.thread.start()

    def stop(self) -> None:
        """Stop the frame loop and wait briefly for the thread."""
        self.running = False
        if self.thread:
            self.thread.join(timeout=2.0)
            self.thread = None

    def _run_loop(self) -> None:
        logger.info("Installation loop: starting (%s, %d fps)", self.preset, self.fps)
        next_frame_start_time = time.time()

        while self.running:
            next_frame_start_time += self.frame_time
            try:
                with self.lock:
                    self.engine.tick()
            except Exception as e:
                logger.error(f"Installation loop: error at frame {self.engine.frame}: {e}", exc_info=True)
                time.sleep(self.frame_time)
                next_frame_start_time = time.time()
                continue

            self._track_fps()

            now = time.time()
            sleep_time = next_frame_start_time - now
            if sleep_time > 0:
                time.sleep(sleep_time)
            elif sleep_time < -0.1:
                # Too far behind; resync instead of running zero-delay frames
                next_frame_start_time = now

        logger.info("Installation loop: stopped at frame %d", self.engine.frame)

    def _track_fps(self) -> None:
        self.fps_frame_count += 1
        current_time = time.time()
        elapsed = current_time - self.last_fps_time
        if elapsed < STATUS_LOG_INTERVAL_SECONDS:
            return
        self.current_actual_fps = self.fps_frame_count / elapsed
        self.fps_frame_count = 0
        self.last_fps_time = current_time
        states = ", ".join(f"{level}={state.value}" for level, state in self.engine.states().items())
        logger.info(
            f"{self.preset} status FPS={self.current_actual_fps:.1f}, frame={self.engine.frame}, {states}"
        )

    async def run_async(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a locking runner method in the default executor.

        HTTP handlers await this so waiting on ``self.lock`` never blocks
        the event loop.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_level(self, level_id: str) -> bool:
        return level_id in self.engine.registry

    def snapshot(self) -> Dict[str, Any]:
        with self.lock:
            data = self.engine.snapshot().to_dict()
        data["preset"] = self.preset
        data["running"] = self.running
        return data

    def levels(self) -> List[Dict[str, Any]]:
        with self.lock:
            states = self.engine.states()
            rates = self.engine.simulator.lerp_rates
            result = []
            for level in self.engine.registry:
                rule = self.engine.machine.rule_for(level.level_id)
                result.append(
                    {
                        "level_id": level.level_id,
                        "title": level.title,
                        "subtitle": level.subtitle,
                        "scale": level.scale,
                        "state": states[level.level_id].value,
                        "rule": rule.summary() if rule is not None else None,
                        "data_points": [
                            {
                                "name": point.name,
                                "unit": level.unit_for(point.name),
                                "lerp_rate": round(rates[point], 4),
                            }
                            for point in level.channels()
                        ],
                    }
                )
        return result

    def history(self) -> List[Dict[str, Any]]:
        with self.lock:
            return [event.to_dict() for event in self.engine.history]

    def health(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "preset": self.preset,
            "running": self.running,
            "frame": self.engine.frame,
            "actual_fps": round(self.current_actual_fps, 1),
            "uptime_seconds": round(time.time() - self.started_at, 1),
        }

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def trigger(self) -> bool:
        with self.lock:
            return self.engine.trigger()

    def spike(self, level_id: str, data_point: str, value: float) -> None:
        """Spike one channel.

        Raises:
            SimulationError: If the level has no such channel
        """
        with self.lock:
            if not self.engine.inject_spike(level_id, data_point, value):
                raise SimulationError(f"Level {level_id!r} has no data point {data_point!r}")

    def transition(self, level_id: str, state: str, play_transition: bool = True) -> Result[TransitionEvent, str]:
        with self.lock:
            return self.engine.transition(level_id, self._parse_state(state), play_transition=play_transition)

    def force_state(self, level_id: str, state: str, play_transition: bool = False) -> Result[TransitionEvent, str]:
        with self.lock:
            return self.engine.force_state(level_id, self._parse_state(state), play_transition=play_transition)

    def reset(self) -> None:
        with self.lock:
            self.engine.reset()
        logger.info("Installation reset")

    def _parse_state(self, raw: str):
        state = self.engine.machine.graph.parse(raw)
        if state is None:
            valid = [s.value for s in self.engine.machine.graph.states]
            raise SimulationError(f"Unknown state {raw!r}. Valid states: {valid}")
        return state
