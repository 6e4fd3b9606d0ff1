import threading

import pytest

pytest.importorskip("flask")

import app as app_module
from config import CFG


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(app_module, "BASE_DIR", str(tmp_path))
    monkeypatch.setattr(app_module, "SESSION", None)
    monkeypatch.setattr(CFG, "LAYOUT_BASE_ITERATIONS", 5)
    monkeypatch.setattr(CFG, "ISOLATE_COMBINATIONS", False)
    monkeypatch.setattr(CFG, "EXPORT_JSON", "state_space.json")
    monkeypatch.setattr(CFG, "BOARDS_TXT", "boards.txt")
    app_module.app.config["TESTING"] = True
    return app_module.app.test_client()


def _puzzle(level="normal", **extra):
    body = {
        "board": {"width": 3, "height": 3},
        "pieces": [{"id": 1, "x": 0, "y": 0, "w": 1, "h": 1}],
        "level": level,
    }
    body.update(extra)
    return body


def test_space_returns_graph_and_positions(client, tmp_path):
    resp = client.post("/space", json=_puzzle(aggregate=4))
    assert resp.status_code == 200
    data = resp.get_json()
    assert data["ok"] is True
    assert data["state_count"] == 9
    assert data["edge_count"] == 24
    assert set(data["positions"]) == set(data["states"])
    assert len(data["aggregate"]["nodes"]) == 3
    assert data["files"] == {"json": "state_space.json", "boards": "boards.txt"}
    assert (tmp_path / "state_space.json").exists()
    assert (tmp_path / "boards.txt").exists()


def test_space_reuses_session_for_same_puzzle(client):
    client.post("/space", json=_puzzle())
    first = app_module.SESSION
    client.post("/space", json=_puzzle(level="sub"))
    assert app_module.SESSION is first
    assert first.active.value == "sub"


def test_state_lookup(client):
    data = client.post("/space", json=_puzzle()).get_json()
    key = data["states"][-1]

    resp = client.get("/state", query_string={"key": key})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["key"] == key
    assert len(body["pieces"]) == 1

    resp = client.get("/state", query_string={"key": "1,0"})
    assert resp.status_code == 400
    assert "Bad state key" in resp.get_json()["reason"]


def test_state_needs_a_session(client):
    resp = client.get("/state", query_string={"key": "1,0,0,0"})
    assert resp.status_code == 400
    assert resp.get_json()["ok"] is False


def test_board_outside_range_is_rejected(client):
    body = _puzzle()
    body["board"] = {"width": 2, "height": 2}
    resp = client.post("/space", json=body)
    assert resp.status_code == 400
    assert "Bad board" in resp.get_json()["reason"]


def test_too_many_pieces_for_all_level(client, monkeypatch):
    monkeypatch.setattr(CFG, "COMBINATION_MAX_PIECES", 1)
    body = _puzzle(level="all")
    body["pieces"].append({"x": 2, "y": 2, "w": 1, "h": 1})
    resp = client.post("/space", json=body)
    assert resp.status_code == 400
    assert "Too many pieces" in resp.get_json()["reason"]


def test_bad_payload_and_level(client):
    resp = client.post("/space", json={"hello": 1})
    assert resp.status_code == 400
    assert resp.get_json()["reason"].startswith("Bad puzzle:")

    resp = client.post("/space", json=_puzzle(level="mega"))
    assert resp.status_code == 400
    assert "Bad level" in resp.get_json()["reason"]


def test_all_level_lists_unreachable_states(client):
    body = {
        "board": {"width": 3, "height": 3},
        "pieces": [{"x": 0, "y": 0, "w": 3, "h": 1}, {"x": 0, "y": 1, "w": 1, "h": 1}],
        "level": "all",
        "unreachable": "1",
    }
    data = client.post("/space", json=body).get_json()
    assert data["ok"] is True
    # 3 bar rows x 6 free cells; the bar can never get below the unit
    assert data["state_count"] == 18
    assert len(data["unreachable"]) == 9


def test_super_layout_navigation(client):
    data = client.post("/space", json=_puzzle(level="super")).get_json()
    ids = [s["id"] for s in data["layouts"]]
    assert ids[0] == "layout_0"

    entered = client.post("/space/layout/layout_0").get_json()
    assert entered["layout_id"] == "layout_0"
    assert entered["state_count"] > 0

    back = client.post("/space/back").get_json()
    assert back["level"] == "super"
    assert [s["id"] for s in back["layouts"]] == ids

    resp = client.post("/space/layout/nope")
    assert resp.status_code == 400


def test_progress_is_not_cached(client):
    resp = client.get("/progress")
    assert resp.status_code == 200
    assert resp.headers["Cache-Control"] == "no-store, max-age=0"
    assert "status" in resp.get_json()


def test_downloads_and_latest_result(client):
    client.post("/space", json=_puzzle())
    resp = client.get("/download/json")
    assert resp.status_code == 200
    assert b'"states"' in resp.data
    resp.close()

    resp = client.get("/download/boards")
    assert resp.status_code == 200
    assert b"9 states" in resp.data
    resp.close()

    latest = client.get("/result/latest").get_json()
    assert latest["ok"] is True
    assert latest["state_count"] == 9


def test_space_waits_while_another_request_holds_the_session(client):
    client.post("/space", json=_puzzle())
    replies = {}

    def post_sub():
        replies["sub"] = app_module.app.test_client().post("/space", json=_puzzle(level="sub"))

    with app_module.SESSION_LOCK:
        worker = threading.Thread(target=post_sub)
        worker.start()
        worker.join(timeout=0.3)
        assert worker.is_alive()
        assert app_module.SESSION.active.value == "normal"

    worker.join(timeout=30)
    assert not worker.is_alive()
    assert replies["sub"].get_json()["level"] == "sub"


def test_parallel_requests_get_their_own_level(client):
    expected = {}
    for level in ("normal", "sub"):
        expected[level] = client.post("/space", json=_puzzle(level=level)).get_json()["state_count"]

    replies = []

    def post(level):
        data = app_module.app.test_client().post("/space", json=_puzzle(level=level)).get_json()
        replies.append((level, data["level"], data["state_count"]))

    workers = [threading.Thread(target=post, args=(lvl,)) for lvl in ("normal", "sub") * 4]
    for w in workers:
        w.start()
    for w in workers:
        w.join(timeout=60)

    assert len(replies) == 8
    for asked, got, count in replies:
        assert got == asked
        assert count == expected[asked]
