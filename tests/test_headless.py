"""Tests for the headless command-line mode."""

import orjson

from main import run_headless


def test_headless_physiological_cycle(tmp_path) -> None:
    export = tmp_path / "history.json"

    summary = run_headless(
        "physiological",
        max_frames=700,
        stats_interval=0,
        seed=1,
        trigger_every=60,
        export_history=str(export),
    )

    assert summary["frames"] == 700
    assert summary["triggers_accepted"] == 1
    assert len(summary["transitions"]) == 15
    assert set(summary["final_states"].values()) == {"Calm"}

    exported = orjson.loads(export.read_bytes())
    assert exported["transitions"] == summary["transitions"]


def test_headless_cascade_without_triggers() -> None:
    summary = run_headless("cascade", max_frames=120, stats_interval=60, seed=42)

    assert summary["frames"] == 120
    assert summary["triggers_accepted"] == 0
    assert summary["final_states"]["predator"] == "Normal"
