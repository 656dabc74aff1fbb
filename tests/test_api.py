import pytest

pytest.importorskip("httpx", reason="httpx requis pour les tests client FastAPI")

from fastapi.testclient import TestClient

from hideseek.main import create_app
from hideseek.services.game_session import GameSession


@pytest.fixture
def client(storage, notifier, clock, rng):
    session = GameSession(storage=storage, notifier=notifier, clock=clock, rng=rng)
    app = create_app(session)
    with TestClient(app) as c:
        yield c


def _add_player(client, name):
    response = client.post("/game/players", json={"name": name})
    assert response.status_code == 201
    return response.json()["id"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    assert payload["phase"] == "setup"


def test_round_flow_over_http(client, clock):
    alice = _add_player(client, "Alice")
    bob = _add_player(client, "Bob")

    start = client.post("/game/rounds/start", json={"hider_id": alice})
    assert start.status_code == 200
    assert start.json()["hiding_period_ms"] == 30 * 60_000

    assert client.post("/game/seeking").json()["phase"] == "seeking"
    clock.advance(60 * 60_000)
    assert client.post("/game/hiding-zone").json()["phase"] == "end-game"
    assert client.post("/game/found").json()["phase"] == "round-complete"

    end = client.post("/game/rounds/end")
    assert end.status_code == 200
    assert end.json()["round"]["measured_ms"] == 60 * 60_000

    ranking = client.get("/game/ranking").json()
    assert ranking[0]["player_id"] == alice
    assert ranking[0]["total_hiding_time"] == "01:00:00"
    assert ranking[1]["player_id"] == bob

    state = client.get("/game/state").json()
    assert state["all_players_have_been_hider"] is False
    assert state["session"]["phase"] == "setup"


def test_invalid_transition_maps_to_409(client):
    response = client.post("/game/found")
    assert response.status_code == 409
    assert response.json()["detail"]


def test_unknown_player_maps_to_404(client):
    _add_player(client, "Alice")
    assert client.post("/game/rounds/start", json={"hider_id": "ghost"}).status_code == 404
    assert client.get("/game/players/ghost").status_code == 404


def test_card_endpoints(client):
    added = client.post("/cards/hand", json={"card_type": "powerup", "powerup_type": "duplicate"})
    assert added.status_code == 200
    dup_id = added.json()["drawn_cards"][0]["instance_id"]
    bonus = client.post("/cards/hand", json={"card_type": "time-bonus", "tier": 1}).json()
    bonus_id = bonus["drawn_cards"][0]["instance_id"]

    self_dup = client.post(f"/cards/{dup_id}/duplicate", json={"target_instance_id": dup_id})
    assert self_dup.status_code == 409
    assert "Cannot duplicate itself" in self_dup.json()["detail"]

    result = client.post(f"/cards/{dup_id}/duplicate", json={"target_instance_id": bonus_id})
    assert result.status_code == 200
    assert result.json()["duplicated_card"]["bonus_minutes"] == {"small": 4, "medium": 6, "large": 10}

    deck = client.get("/cards").json()
    assert len(deck["hand"]) == 2
    assert deck["total_time_bonus_minutes"] == 6


def test_selection_via_question_category(client):
    drawn = client.post("/cards/selection", json={"category_id": "radar"})
    assert drawn.status_code == 200
    cards = drawn.json()["drawn_cards"]
    assert len(cards) == 2

    kept = client.post("/cards/selection/keep", json={"instance_ids": [cards[0]["instance_id"]]})
    assert kept.status_code == 200
    assert len(client.get("/cards").json()["hand"]) == 1

    assert client.post("/cards/selection", json={"category_id": "nope"}).status_code == 404


def test_curse_and_trap_endpoints(client):
    curse = client.post("/cards/hand", json={"card_type": "curse", "curse_id": "curse-cairn"}).json()
    curse_id = curse["drawn_cards"][0]["instance_id"]
    assert client.post(f"/cards/{curse_id}/curse").status_code == 200
    assert client.delete(f"/cards/curses/{curse_id}").status_code == 200
    assert client.delete(f"/cards/curses/{curse_id}").status_code == 404

    trap = client.post("/cards/hand", json={"card_type": "time-trap"}).json()
    trap_id = trap["drawn_cards"][0]["instance_id"]
    assert client.post(f"/cards/{trap_id}/time-trap", json={"station_name": ""}).status_code == 409
    assert client.post(f"/cards/{trap_id}/time-trap", json={"station_name": "Depot"}).status_code == 200
    assert client.post(f"/cards/traps/{trap_id}/trigger").status_code == 200
    assert client.post(f"/cards/traps/{trap_id}/trigger").status_code == 409


def test_question_endpoints(client):
    alice = _add_player(client, "Alice")
    _add_player(client, "Bob")
    client.post("/game/rounds/start", json={"hider_id": alice})

    listed = client.get("/questions").json()
    assert len(listed["available"]) == 61
    assert all(q["category_id"] != "tentacle" for q in listed["available"])
    assert client.get("/questions/nope").status_code == 404
    assert client.post("/questions/nope/ask").status_code == 404
    assert client.post("/questions/matching-transit-airport/ask").status_code == 409

    client.post("/game/seeking")
    asked = client.post("/questions/matching-transit-airport/ask")
    assert asked.status_code == 200
    assert (asked.json()["cards_draw"], asked.json()["cards_keep"]) == (3, 1)

    timers = client.get("/timers").json()
    assert timers["question_response"]["question_id"] == "matching-transit-airport"
    assert timers["question_response"]["display"] == "05:00"
    assert timers["hiding_duration"]["is_running"] is True

    answered = client.post("/questions/matching-transit-airport/answer", json={"answer": "no"})
    assert answered.status_code == 200
    assert len(answered.json()["drawn_cards"]) == 3
    assert client.get("/timers").json()["question_response"]["is_running"] is False

    stats = {s["category_id"]: s for s in client.get("/questions/stats").json()}
    assert stats["matching"]["asked"] == 1
    assert stats["matching"]["available"] == stats["matching"]["total"] - 1
    assert client.get("/questions").json()["asked"][0]["answer"] == "no"


def test_veto_over_http(client):
    alice = _add_player(client, "Alice")
    _add_player(client, "Bob")
    client.post("/game/rounds/start", json={"hider_id": alice})
    client.post("/game/seeking")
    veto = client.post("/cards/hand", json={"card_type": "powerup", "powerup_type": "veto"}).json()
    veto_id = veto["drawn_cards"][0]["instance_id"]

    assert client.post(f"/cards/{veto_id}/veto").status_code == 409

    client.post("/questions/radar-1-mile/ask")
    played = client.post(f"/cards/{veto_id}/veto")
    assert played.status_code == 200
    assert played.json()["question_id"] == "radar-1-mile"
    assert len(played.json()["drawn_cards"]) == 2
    assert client.get("/questions").json()["pending"] is None


def test_state_survives_app_restart(storage, notifier, clock, rng):
    first = create_app(GameSession(storage=storage, notifier=notifier, clock=clock, rng=rng))
    with TestClient(first) as c:
        alice = c.post("/game/players", json={"name": "Alice"}).json()["id"]
        c.post("/game/players", json={"name": "Bob"})
        c.post("/game/rounds/start", json={"hider_id": alice})
        c.post("/cards/draw", json={"count": 3})

    clock.advance(10 * 60_000)
    second = create_app(GameSession(storage=storage, notifier=notifier, clock=clock, rng=rng))
    with TestClient(second) as c:
        state = c.get("/game/state").json()

    assert state["session"]["phase"] == "hiding-period"
    assert len(state["deck"]["hand"]) == 3
    assert state["timers"]["hiding_period"]["remaining_ms"] == 20 * 60_000


def test_websocket_streams_state_and_pong(client):
    with client.websocket_connect("/ws") as ws:
        first = ws.receive_json()
        assert first["type"] == "state"
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}
        ws.send_json({"type": "identify", "screen_id": "tablet"})
        assert ws.receive_json()["type"] == "identified"
