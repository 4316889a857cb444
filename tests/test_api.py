import json

import pytest
from fastapi.testclient import TestClient

from core.config import AppConfig, MinigameConfig, PosesConfig
from core.domain import CompletionPolicy, PoseGoal
from main import create_app

from conftest import make_skeleton, transform, yaw


def _landmarks(points):
    return {
        str(i): {"x": float(p[0]), "y": float(p[1]), "z": float(p[2])}
        for i, p in points.items()
    }


def _stream(points):
    return "\n".join(f"FREE|{i}|{p[0]}|{p[1]}|{p[2]}" for i, p in points.items())


POSE_A = make_skeleton(seed=21)
POSE_B = make_skeleton(seed=22)


def _config(tmp_path, goals=(), completion=None):
    return AppConfig(
        poses=PosesConfig(save_directory=str(tmp_path / "poses")),
        minigame=MinigameConfig(goals=tuple(goals), completion=completion),
    )


@pytest.fixture
def client(tmp_path):
    with TestClient(create_app(_config(tmp_path))) as c:
        yield c


def _record(client, name, points, tolerance=0.05):
    response = client.post("/api/poses", json={
        "name": name, "landmarks": _landmarks(points), "tolerance": tolerance,
    })
    assert response.status_code == 201, response.text
    return response.json()


class TestRoot:

    def test_root_and_health(self, client):
        assert client.get("/").json()["health"] == "/api/health"

        health = client.get("/api/health").json()
        assert health["status"] == "healthy"
        assert health["poses_loaded"] == 0
        assert health["sequence_phase"] == "idle"


class TestPoses:

    def test_record_list_and_get(self, client):
        body = _record(client, "  Arms Up ", POSE_A)
        assert body["name"] == "arms up"
        assert body["landmark_count"] == 33

        listing = client.get("/api/poses").json()
        assert listing["count"] == 1
        assert listing["poses"][0]["name"] == "arms up"

        detail = client.get("/api/poses/ARMS UP").json()
        assert detail["tolerance"] == 0.05
        assert detail["landmarks"]["23"] == {"x": -0.1, "y": 0.0, "z": 0.0}

    def test_unknown_pose(self, client):
        assert client.get("/api/poses/nobody").status_code == 404

    def test_incomplete_landmarks_rejected(self, client):
        partial = dict(POSE_A)
        del partial[10]
        response = client.post("/api/poses", json={"name": "x", "landmarks": _landmarks(partial)})
        assert response.status_code == 422
        assert client.get("/api/poses").json()["count"] == 0

    def test_non_finite_landmarks_rejected(self, client):
        landmarks = _landmarks(POSE_A)
        landmarks["0"]["x"] = float("nan")
        response = client.post(
            "/api/poses",
            content=json.dumps({"name": "nan pose", "landmarks": landmarks}),
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 422
        assert client.get("/api/poses").json()["count"] == 0

    def test_blank_name_rejected(self, client):
        response = client.post("/api/poses", json={"name": "   ", "landmarks": _landmarks(POSE_A)})
        assert response.status_code == 400

    def test_reload_reads_disk(self, client, tmp_path):
        _record(client, "a", POSE_A)
        _record(client, "b", POSE_B)
        (tmp_path / "poses" / "b.json").unlink()

        assert client.post("/api/poses/reload").json() == {"loaded": 1}
        assert client.get("/api/health").json()["poses_loaded"] == 1

    def test_similarity(self, client):
        _record(client, "a", POSE_A)

        turned = transform(POSE_A, rotation=yaw(40.0), offset=(1.0, 0.0, 1.0))
        body = client.post("/api/poses/a/similarity", json={"landmarks": _landmarks(turned)}).json()
        assert body["similarity"] == 1.0
        assert body["normalized"] is True
        assert body["rotation_applied"] is True

        no_hips = {i: p for i, p in POSE_A.items() if i not in (23, 24)}
        body = client.post("/api/poses/a/similarity", json={"landmarks": _landmarks(no_hips)}).json()
        assert body["similarity"] == 0.0
        assert body["normalized"] is False


class TestSequenceRest:

    def test_start_without_goals_is_rejected(self, client):
        assert client.post("/api/sequence/start").status_code == 400

    def test_play_through(self, client):
        _record(client, "a", POSE_A)
        _record(client, "b", POSE_B)

        state = client.post("/api/sequence/start", json={"goals": [
            {"pose_name": "A"}, {"pose_name": "B", "display_asset": "b.png"},
        ]}).json()
        assert state["phase"] == "active"
        assert state["current_goal"]["pose_name"] == "A"
        assert [e["type"] for e in state["events"]] == ["goal_changed"]

        body = client.post("/api/sequence/tick", json={"landmarks": _landmarks(POSE_B)}).json()
        assert body["tick"]["advanced"] is False
        assert body["state"]["current_index"] == 0

        body = client.post("/api/sequence/tick", json={"landmarks": _landmarks(POSE_A)}).json()
        assert body["tick"]["advanced"] is True
        assert body["state"]["current_goal"]["display_asset"] == "b.png"

        body = client.post("/api/sequence/tick", json={"message": _stream(POSE_B)}).json()
        assert body["tick"]["completed"] is True
        assert body["state"]["phase"] == "complete"
        assert body["state"]["events"][-1]["type"] == "sequence_complete"

        body = client.post("/api/sequence/tick", json={"landmarks": _landmarks(POSE_A)}).json()
        assert body["tick"] is None

        state = client.post("/api/sequence/reset").json()
        assert state["phase"] == "idle"

    def test_tick_reports_missing_reference(self, client):
        client.post("/api/sequence/start", json={"goals": [{"pose_name": "ghost"}]})
        body = client.post("/api/sequence/tick", json={"landmarks": _landmarks(POSE_A)}).json()
        assert body["tick"]["reference_found"] is False
        assert body["tick"]["notes"] == ["reference_not_found"]

    def test_configured_goals_auto_start(self, tmp_path):
        config = _config(tmp_path, goals=[PoseGoal("a")], completion=CompletionPolicy(display_seconds=0.0))
        with TestClient(create_app(config)) as c:
            assert c.get("/api/sequence").json()["phase"] == "active"

            _record(c, "a", POSE_A)
            c.post("/api/sequence/tick", json={"landmarks": _landmarks(POSE_A)})
            body = c.post("/api/sequence/tick", json={}).json()

            assert body["tick"] is None
            event = body["state"]["events"][-1]
            assert event["type"] == "transition"
            assert event["next_scene"] == "HubLevel"


class TestWebSocket:

    def test_session(self, client):
        _record(client, "a", POSE_A)

        with client.websocket_connect("/ws/pose") as ws:
            assert ws.receive_json()["type"] == "session_started"

            ws.send_json({"type": "start", "data": {"goals": [{"pose_name": "a"}]}})
            goal = ws.receive_json()
            assert goal["type"] == "goal_changed"
            assert goal["data"]["pose_name"] == "a"

            ws.send_json({"type": "landmarks", "data": {"landmarks": _landmarks(POSE_B)}})
            tick = ws.receive_json()
            assert tick["type"] == "tick_result"
            assert tick["data"]["tick"]["advanced"] is False

            ws.send_json({"type": "stream", "data": {"message": _stream(POSE_A)}})
            assert ws.receive_json()["data"]["tick"]["completed"] is True
            assert ws.receive_json()["type"] == "sequence_complete"

            ws.send_json({"type": "end_session"})
            assert ws.receive_json()["type"] == "session_ended"

        # The REST session is independent of the WebSocket one
        assert client.get("/api/sequence").json()["phase"] == "idle"

    def test_errors(self, client):
        with client.websocket_connect("/ws/pose") as ws:
            ws.receive_json()

            ws.send_json({"type": "dance"})
            assert ws.receive_json()["type"] == "error"

            ws.send_json({"type": "start", "data": {}})
            assert ws.receive_json()["data"]["error"] == "No pose goals given or configured"

            ws.send_json({"type": "landmarks", "data": {"landmarks": "nope"}})
            assert ws.receive_json()["type"] == "error"

            ws.send_json({"type": "landmarks", "data": {"landmarks": _landmarks(POSE_A)}})
            assert ws.receive_json()["data"]["tick"] is None


def test_detect_needs_a_readable_image(client):
    response = client.post("/api/pose/detect", json={"image_base64": "bm90IGFuIGltYWdl"})
    # 503 when the capture extra isn't installed
    assert response.status_code in (200, 503)
    if response.status_code == 200:
        assert response.json()["success"] is False
