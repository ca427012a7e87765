"""
Tests for the HTTP and WebSocket surface.

Runs the app with the in-memory snapshot store.

Run with: pytest test_main.py -v
"""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

import main
from game import new_game
from models.snapshot import to_snapshot
from routers import health
from routers.games import game_updates, set_snapshot_store
from stores.snapshot_store import MemorySnapshotStore


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(main.config, "REDIS_URL", "")
    with TestClient(main.app) as test_client:
        yield test_client


def _create(client, game_id="api-game", **options):
    response = client.post("/api/games", json={"game_id": game_id, **options})
    assert response.status_code == 201
    return response.json()


def _act(client, game_id, player_id, action, **fields):
    return client.post(
        f"/api/games/{game_id}/actions",
        json={"player_id": player_id, "action": action, **fields},
    )


class BrokenSocket:
    """Accepts the first message, then fails every send."""

    def __init__(self):
        self.sent = []

    async def accept(self):
        pass

    async def send_json(self, data):
        if self.sent:
            raise RuntimeError("socket gone")
        self.sent.append(data)

    async def receive_text(self):
        await asyncio.Event().wait()


def _seat_and_ready(client, game_id="api-game"):
    for pid in ("p0", "p1"):
        assert _act(client, game_id, pid, "seat", name=pid.upper()).status_code == 200
    for pid in ("p0", "p1"):
        assert _act(client, game_id, pid, "ready").status_code == 200


# =============================================================================
# Health
# =============================================================================

class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_ready_with_memory_store(self, client):
        response = client.get("/ready")
        assert response.status_code == 200
        checks = response.json()["checks"]
        assert checks["store"] == {"status": "ok", "backend": "MemorySnapshotStore"}
        assert checks["redis"] == {"status": "not_configured"}

    def test_not_ready_without_store(self, client, monkeypatch):
        monkeypatch.setattr(health, "_store", None)
        response = client.get("/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    def test_not_ready_when_redis_down(self, client, monkeypatch):
        redis_client = MagicMock()
        redis_client.ping = AsyncMock(side_effect=ConnectionError("refused"))
        monkeypatch.setattr(health, "_redis_client", redis_client)

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["redis"] == {"status": "error", "message": "refused"}


# =============================================================================
# Snapshots
# =============================================================================

class TestSnapshotEndpoints:

    def test_create_game(self, client):
        snapshot = _create(client)
        assert snapshot["gameId"] == "api-game"
        assert snapshot["version"] == 1
        assert snapshot["phase"] == "setup"
        assert snapshot["options"]["flipMode"] == "never"

    def test_create_with_options(self, client):
        snapshot = _create(client, include_jokers=False, flip_mode="always")
        assert snapshot["options"]["includeJokers"] is False
        assert snapshot["options"]["flipMode"] == "always"

    def test_create_without_body_generates_id(self, client):
        response = client.post("/api/games")
        assert response.status_code == 201
        assert response.json()["gameId"]

    def test_create_duplicate_conflicts(self, client):
        _create(client)
        response = client.post("/api/games", json={"game_id": "api-game"})
        assert response.status_code == 409

    def test_get_game(self, client):
        _create(client)
        response = client.get("/api/games/api-game")
        assert response.status_code == 200
        assert response.json()["version"] == 1

    def test_get_missing_game(self, client):
        assert client.get("/api/games/missing").status_code == 404

    def test_get_scores(self, client):
        _create(client)
        _act(client, "api-game", "p0", "seat", name="Alice")

        response = client.get("/api/games/api-game/scores")

        assert response.status_code == 200
        assert response.json() == {
            "version": 2,
            "scores": [{"playerId": "p0", "visible": 0, "breakdown": None}],
        }
        assert client.get("/api/games/missing/scores").status_code == 404

    def test_put_increments_version(self, client):
        snapshot = _create(client)
        response = client.put("/api/games/api-game", json=snapshot)
        assert response.status_code == 200
        assert response.json() == {"version": 2}

    def test_put_stale_snapshot_conflicts(self, client):
        snapshot = _create(client)
        client.put("/api/games/api-game", json=snapshot)

        response = client.put("/api/games/api-game", json=snapshot)

        assert response.status_code == 409
        assert response.json()["detail"] == {"error": "stale_write", "expected": 1, "current": 2}

    def test_put_malformed_snapshot(self, client):
        _create(client)
        response = client.put("/api/games/api-game", json={"version": 1})
        assert response.status_code == 422

    def test_put_game_id_mismatch(self, client):
        snapshot = _create(client)
        response = client.put("/api/games/other-game", json=snapshot)
        assert response.status_code == 422


# =============================================================================
# Actions
# =============================================================================

class TestActionEndpoint:

    def test_seat_returns_snapshot(self, client):
        _create(client)
        response = _act(client, "api-game", "p0", "seat", name="Alice")

        assert response.status_code == 200
        body = response.json()
        assert body["snapshot"]["version"] == 2
        assert body["snapshot"]["players"][0]["name"] == "Alice"
        assert body["notices"] == []

    def test_deal(self, client):
        _create(client)
        _seat_and_ready(client)

        response = _act(client, "api-game", "p0", "deal")

        assert response.status_code == 200
        body = response.json()
        assert body["snapshot"]["phase"] == "initial_flip"
        assert body["notices"] == ["game_dealt"]
        assert body["legalActions"] == ["flip_initial"]
        assert body["scores"] == [
            {"playerId": "p0", "visible": 0, "breakdown": None},
            {"playerId": "p1", "visible": 0, "breakdown": None},
        ]

    def test_rule_violation_is_bad_request(self, client):
        _create(client)
        _seat_and_ready(client)
        _act(client, "api-game", "p0", "deal")

        response = _act(client, "api-game", "p1", "flip_initial", cell=0)

        assert response.status_code == 400
        assert response.json()["detail"] == {"error": "not_your_turn"}
        assert client.get("/api/games/api-game").json()["version"] == 6

    def test_missing_cell(self, client):
        _create(client)
        _seat_and_ready(client)
        _act(client, "api-game", "p0", "deal")

        response = _act(client, "api-game", "p0", "flip_initial")

        assert response.status_code == 422

    def test_cell_out_of_range(self, client):
        _create(client)
        response = _act(client, "api-game", "p0", "flip", cell=6)
        assert response.status_code == 422

    def test_unknown_game(self, client):
        response = _act(client, "missing", "p0", "seat")
        assert response.status_code == 404

    def test_unseated_player(self, client):
        _create(client)
        response = _act(client, "api-game", "stranger", "draw", source="deck")
        assert response.status_code == 400
        assert response.json()["detail"] == {"error": "not_seated"}


# =============================================================================
# WebSocket
# =============================================================================

class TestWebSocket:

    def test_sends_current_snapshot(self, client):
        _create(client)
        with client.websocket_connect("/api/games/api-game/ws") as websocket:
            message = websocket.receive_json()
        assert message["type"] == "snapshot"
        assert message["snapshot"]["version"] == 1

    def test_pushes_changes(self, client):
        _create(client)
        with client.websocket_connect("/api/games/api-game/ws") as websocket:
            websocket.receive_json()
            _act(client, "api-game", "p0", "seat", name="Alice")
            message = websocket.receive_json()
        assert message["snapshot"]["version"] == 2
        assert message["snapshot"]["players"][0]["id"] == "p0"

    def test_unknown_game(self, client):
        with client.websocket_connect("/api/games/missing/ws") as websocket:
            message = websocket.receive_json()
        assert message == {"type": "error", "message": "Game not found"}

    @pytest.mark.asyncio
    async def test_failed_send_closes_subscription(self, caplog):
        store = MemorySnapshotStore()
        await store.save_snapshot("ws-game", to_snapshot(new_game("ws-game")))
        websocket = BrokenSocket()

        set_snapshot_store(store)
        try:
            endpoint = asyncio.create_task(game_updates(websocket, "ws-game"))
            for _ in range(100):
                if websocket.sent:
                    break
                await asyncio.sleep(0)

            state = new_game("ws-game")
            state.version = 1
            with caplog.at_level(logging.ERROR, logger="routers.games"):
                await store.save_snapshot("ws-game", to_snapshot(state))
                await asyncio.wait_for(endpoint, timeout=1)
        finally:
            set_snapshot_store(None)

        assert [m["snapshot"]["version"] for m in websocket.sent] == [1]
        assert store.subscriber_count("ws-game") == 0
        assert any("socket gone" in r.getMessage() for r in caplog.records)
