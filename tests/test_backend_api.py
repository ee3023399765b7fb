"""Tests for the installation HTTP API."""

import threading
import time

import pytest
from fastapi.testclient import TestClient

from backend.app_factory import AppContext, create_app


@pytest.fixture
def test_client():
    """Test client around a runner that is not ticking in the background."""
    context = AppContext(preset="cascade", seed=42)
    app = create_app(context=context, start_runner=False)

    with TestClient(app) as client:
        yield client


class TestQueries:
    def test_levels(self, test_client) -> None:
        response = test_client.get("/api/levels")
        assert response.status_code == 200

        levels = response.json()
        assert [level["level_id"] for level in levels] == [
            "predator",
            "flock",
            "individual",
            "muscle",
            "microscopic",
        ]
        predator = levels[0]
        assert predator["state"] == "Normal"
        assert predator["rule"] == "Hunger > 80"
        assert predator["data_points"][0]["name"] == "Hunger"
        assert 0.02 <= predator["data_points"][0]["lerp_rate"] <= 0.3

    def test_state(self, test_client) -> None:
        data = test_client.get("/api/state").json()

        assert data["preset"] == "cascade"
        assert data["frame"] == 0
        assert data["running"] is False
        assert data["levels"]["flock"]["state"] == "Normal"

    def test_health(self, test_client) -> None:
        data = test_client.get("/health").json()

        assert data["status"] == "ok"
        assert data["preset"] == "cascade"


class TestCommands:
    def test_spike(self, test_client) -> None:
        response = test_client.post("/api/levels/predator/spike", json={"data_point": "Hunger", "value": 95})
        assert response.status_code == 200
        assert response.json()["accepted"] is True

        values = test_client.get("/api/state").json()["levels"]["predator"]["values"]
        assert values["Hunger"] == 95.0

    def test_spike_unknown_level_or_channel(self, test_client) -> None:
        assert test_client.post("/api/levels/whale/spike", json={"data_point": "Hunger"}).status_code == 404

        response = test_client.post("/api/levels/predator/spike", json={"data_point": "Wingspan"})
        assert response.status_code == 404
        assert "Wingspan" in response.json()["error"]

    def test_force_then_invalid_transition(self, test_client) -> None:
        response = test_client.post("/api/levels/individual/force", json={"state": "dead"})
        assert response.status_code == 200
        event = response.json()["event"]
        assert event["to_state"] == "Dead"
        assert event["forced"] is True

        response = test_client.post("/api/levels/individual/transition", json={"state": "Excited"})
        assert response.status_code == 409
        assert "terminal" in response.json()["error"]

    def test_transition(self, test_client) -> None:
        response = test_client.post("/api/levels/flock/transition", json={"state": "EXCITED"})

        assert response.status_code == 200
        assert response.json()["event"]["transition"] == "NORMAL_TO_EXCITED"
        assert test_client.get("/api/state").json()["levels"]["flock"]["transition"] == "NORMAL_TO_EXCITED"

    def test_unknown_state(self, test_client) -> None:
        response = test_client.post("/api/levels/flock/transition", json={"state": "asleep"})
        assert response.status_code == 400

    def test_trigger_is_debounced(self, test_client) -> None:
        first = test_client.post("/api/trigger").json()
        second = test_client.post("/api/trigger").json()

        assert first["accepted"] is True
        assert second["accepted"] is False

        state = test_client.get("/api/state").json()
        assert state["sequence_active"] is True
        assert state["activation_active"] is True
        assert {level["state"] for level in state["levels"].values()} == {"Excited"}

    def test_history_and_reset(self, test_client) -> None:
        test_client.post("/api/levels/muscle/transition", json={"state": "Excited"})
        history = test_client.get("/api/history").json()
        assert history[0]["level_id"] == "muscle"
        assert history[0]["kind"] == "manual"

        assert test_client.post("/api/reset").json()["accepted"] is True
        assert test_client.get("/api/history").json() == []
        assert test_client.get("/api/state").json()["levels"]["muscle"]["state"] == "Normal"


class TestConcurrency:
    def test_request_waiting_on_the_engine_does_not_stall_the_server(self, test_client) -> None:
        runner = test_client.app.state.context.runner
        status: dict = {}

        def fetch(name: str, path: str) -> None:
            status[name] = test_client.get(path).status_code

        with runner.lock:
            state_request = threading.Thread(target=fetch, args=("state", "/api/state"))
            state_request.start()
            time.sleep(0.1)

            health_request = threading.Thread(target=fetch, args=("health", "/health"))
            health_request.start()
            health_request.join(timeout=5.0)

            assert status.get("health") == 200
            assert "state" not in status

        state_request.join(timeout=5.0)
        assert status["state"] == 200
