"""Main entry point for the BioCascade installation.

This module provides command-line options to run the installation:
- Window mode (default): pygame viewer with keyboard and gamepad control
- Web mode: FastAPI backend driving the engine on a background thread
- Headless mode: simulated clock, faster than realtime, for testing
"""

import argparse
import logging
import random
import sys
from typing import Any, Dict, List, Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
)

logger = logging.getLogger(__name__)


def run_web_server(preset: str, seed: Optional[int] = None) -> None:
    """Run the FastAPI backend."""
    from biocascade.config.display import SEPARATOR_WIDTH
    from biocascade.config.server import DEFAULT_API_PORT

    try:
        import uvicorn

        from backend.app_factory import create_app
    except ImportError as e:
        logger.error("Error: Required dependencies not installed: %s", e)
        logger.error("Install with: pip install -e .")
        sys.exit(1)

    app = create_app(preset=preset, seed=seed)
    port = app.state.context.api_port or DEFAULT_API_PORT

    logger.info("=" * SEPARATOR_WIDTH)
    logger.info("BIOCASCADE - WEB SERVER (%s)", preset)
    logger.info("=" * SEPARATOR_WIDTH)
    logger.info("API docs available at http://localhost:%d/docs", port)
    logger.info("Press Ctrl+C to stop the server")
    logger.info("=" * SEPARATOR_WIDTH)

    uvicorn.run(app, host="0.0.0.0", port=port)


def run_headless(
    preset: str,
    max_frames: int,
    stats_interval: int = 300,
    seed: Optional[int] = None,
    trigger_every: int = 0,
    export_history: Optional[str] = None,
) -> Dict[str, Any]:
    """Run the installation without a window on a simulated clock.

    Args:
        preset: Preset name
        max_frames: Number of frames to simulate
        stats_interval: Log the level states every N frames (0 disables)
        seed: Optional random seed for deterministic behavior
        trigger_every: Send a trigger every N frames (0 disables)
        export_history: Optional filename for the full transition log (JSON)

    Returns:
        Summary with the frame count, final states and every transition
    """
    import orjson

    from biocascade.config.presets import get_preset
    from biocascade.events import TransitionEvent
    from biocascade.simulation.engine import InstallationEngine

    engine = InstallationEngine(get_preset(preset), rng=random.Random(seed))
    frame_seconds = engine.timing.frame_seconds
    transitions: List[Dict[str, Any]] = []

    def record(event: TransitionEvent) -> None:
        transitions.append(event.to_dict())
        logger.info(
            "frame %d: %s %s (%s)", event.frame, event.level_id, event.transition_name, event.kind.value
        )

    engine.subscribe(record)

    for frame in range(1, max_frames + 1):
        now = frame * frame_seconds
        if trigger_every and frame % trigger_every == 0:
            engine.trigger(now)
        engine.tick(now)
        if stats_interval and frame % stats_interval == 0:
            states = ", ".join(f"{level}={state.value}" for level, state in engine.states().items())
            logger.info("frame %d: %s", frame, states)

    summary = {
        "preset": preset,
        "seed": seed,
        "frames": engine.frame,
        "final_states": {level: state.value for level, state in engine.states().items()},
        "triggers_accepted": engine.trigger_controller.triggers_accepted,
        "triggers_ignored": engine.trigger_controller.triggers_ignored,
        "transitions": transitions,
    }

    if export_history:
        with open(export_history, "wb") as f:
            f.write(orjson.dumps(summary, option=orjson.OPT_INDENT_2))
        logger.info("Transition history exported to %s", export_history)

    logger.info("Headless run complete: %d frames, %d transitions", engine.frame, len(transitions))
    return summary


def main():
    """Parse command-line arguments and run the appropriate mode."""
    from biocascade.config.presets import PRESETS
    from biocascade.config.server import DEFAULT_PRESET

    parser = argparse.ArgumentParser(
        description="BioCascade five-level video installation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Open the viewer window (default)
  python main.py

  # Trigger-driven preset behind the HTTP API
  python main.py --web --preset physiological

  # Headless run with a trigger every 10 seconds, history exported
  python main.py --headless --max-frames 3600 --trigger-every 600 --seed 42 --export-history run.json
        """,
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--headless", action="store_true", help="Run without a window on a simulated clock")
    mode.add_argument("--web", action="store_true", help="Run the FastAPI backend")

    parser.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        default=DEFAULT_PRESET,
        help=f"Installation preset (default: {DEFAULT_PRESET})",
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="Random seed for deterministic behavior (optional)"
    )
    parser.add_argument(
        "--max-frames",
        type=int,
        default=3600,
        help="Frames to simulate in headless mode (default: 3600)",
    )
    parser.add_argument(
        "--stats-interval",
        type=int,
        default=300,
        help="Log level states every N frames in headless mode (default: 300)",
    )
    parser.add_argument(
        "--trigger-every",
        type=int,
        default=0,
        metavar="FRAMES",
        help="Send a trigger every N frames in headless mode (default: never)",
    )
    parser.add_argument(
        "--export-history",
        type=str,
        default=None,
        metavar="FILENAME",
        help="Write every transition of a headless run to a JSON file",
    )

    args = parser.parse_args()

    if args.headless:
        logger.info("Starting headless run: %s, %d frames", args.preset, args.max_frames)
        run_headless(
            args.preset,
            args.max_frames,
            stats_interval=args.stats_interval,
            seed=args.seed,
            trigger_every=args.trigger_every,
            export_history=args.export_history,
        )
    elif args.web:
        run_web_server(args.preset, seed=args.seed)
    else:
        from installation_app import main as run_viewer

        run_viewer(args.preset, seed=args.seed)


if __name__ == "__main__":
    main()
