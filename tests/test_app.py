"""HTTP tests for blackjack_api/app.py using FastAPI's TestClient."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from blackjack_api.app import create_app
from tests.conftest import rigged_shoe

PLAYER = {"X-Player-Id": "alice"}


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c


def rig(client, *codes):
    client.app.state.game.table.shoe = rigged_shoe(*codes)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_modes(client):
    modes = {m["mode"]: m for m in client.get("/modes").json()}
    assert set(modes) == {"real", "practice", "testing"}
    assert modes["real"]["persist_stats"]
    assert modes["testing"]["fixed_bet"] == 10


def test_commands_need_a_session(client):
    assert client.get("/state").status_code == 404
    assert client.post("/hit").status_code == 404


def test_real_mode_needs_player(client):
    resp = client.post("/session", json={"mode": "real"})
    assert resp.status_code == 401


def test_unknown_mode_is_rejected(client):
    assert client.post("/session", json={"mode": "casino"}).status_code == 422


def test_practice_round(client):
    state = client.post("/session", json={"mode": "practice"}).json()
    assert state["phase"] == "betting"
    assert not state["persisted"]

    rig(client, "10S", "10D", "6H", "7C", "3C")
    state = client.post("/bet", json={"amount": 20}).json()
    assert state["phase"] == "playing"
    assert state["dealer"]["hidden_cards"] == 1
    assert len(state["dealer"]["cards"]) == 1
    assert state["hint"]["action"] == "surrender"
    assert "surrender" in state["available_actions"]

    state = client.post("/hit").json()
    assert state["accepted"]
    assert state["player_hands"][0]["value"] == 19
    assert state["hint"]["action"] == "stand"

    state = client.post("/stand").json()
    assert state["phase"] == "finished"
    assert state["dealer"]["hidden_cards"] == 0
    assert state["profit"] == 20
    assert state["bankroll"] == 1020
    assert state["player_hands"][0]["result"] == "win"
    assert state["stats"]["hands_won"] == 1


def test_invalid_command_is_not_accepted(client):
    client.post("/session", json={"mode": "practice"})
    state = client.post("/stand").json()
    assert state["accepted"] is False
    assert state["phase"] == "betting"

    state = client.post("/bet", json={"amount": -5}).json()
    assert state["accepted"] is False


def test_testing_mode_deals_and_grades(client):
    state = client.post("/session", json={"mode": "testing"}).json()
    assert state["main_bet"] == 10
    if state["phase"] == "playing":
        client.post("/stand")

    rig(client, "10S", "10D", "6H", "7C", "8S")
    state = client.post("/new-round").json()
    assert state["accepted"]
    assert state["phase"] == "playing"
    assert state["hint"] is None

    state = client.post("/hit").json()
    assert state["feedback"]["player_action"] == "hit"
    assert state["feedback"]["recommended_action"] == "surrender"
    assert state["feedback"]["is_correct"] is False
    assert state["profit"] == -10
    assert state["bankroll"] == 1000


def test_real_round_with_side_bet(client):
    state = client.post("/session", json={"mode": "real"}, headers=PLAYER).json()
    assert state["persisted"]
    assert state["bankroll"] == 1000

    state = client.post("/bet", json={"amount": 100}).json()
    assert state["phase"] == "side_bets"
    state = client.post("/side-bets", json={"type": "perfect_pairs", "amount": 10}).json()
    assert state["pending_bets"] == 110
    assert state["available_funds"] == 890
    state = client.delete("/side-bets/perfect_pairs").json()
    assert state["pending_bets"] == 100
    state = client.post("/side-bets", json={"type": "perfect_pairs", "amount": 10}).json()
    assert state["accepted"]

    state = client.post("/side-bets", json={"type": "lucky_ladies", "amount": 10}).json()
    assert state["accepted"] is False

    rig(client, "7H", "10D", "7H", "9C")
    state = client.post("/deal").json()
    assert state["phase"] == "playing"
    assert state["hint"] is None
    assert state["side_bets"][0]["result"] == "win"

    state = client.post("/stand").json()
    assert state["profit"] == 150
    assert state["bankroll"] == 1150


def test_exit_saves_and_session_restores(client):
    client.post("/session", json={"mode": "real"}, headers=PLAYER)
    client.post("/bet", json={"amount": 50})
    rig(client, "5S", "10H", "6D", "8C", "9H")
    client.post("/deal")
    state = client.post("/double").json()
    assert state["bankroll"] == 1100

    record = client.post("/exit").json()
    assert record["bankroll"] == 1100
    assert record["hands_won"] == 1
    assert client.get("/state").status_code == 404

    state = client.post("/session", json={"mode": "real"}, headers=PLAYER).json()
    assert state["bankroll"] == 1100
    stats = client.get("/stats").json()
    assert stats["hands_played"] == 1

    other = client.post("/session", json={"mode": "real"}, headers={"X-Player-Id": "bob"}).json()
    assert other["bankroll"] == 1000


def test_strategy_lookup(client):
    resp = client.post("/strategy", json={"player_total": 16, "dealer_up": 10, "can_surrender": True})
    assert resp.status_code == 200
    assert resp.json()["action"] == "surrender"

    resp = client.post("/strategy", json={"player_total": 12, "dealer_up": 1, "is_soft": True, "is_pair": True})
    assert resp.json()["action"] == "split"

    assert client.post("/strategy", json={"player_total": 30, "dealer_up": 5}).status_code == 422
