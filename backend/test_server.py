"""
Tests for the FastAPI server

Tests cover:
- Health and state endpoints
- WebSocket command dispatch and payload validation
- Engine emissions flushed ahead of command replies
- Save/load over the socket, confined to the save directory
"""
import os

import pytest
from fastapi.testclient import TestClient

import server

REPLY_TYPES = {"RESULT", "ERROR", "SAVED", "LOADED", "STATE"}


@pytest.fixture
def client(monkeypatch, tmp_path):
    monkeypatch.setattr(server, "manager", server.SessionManager(save_dir=str(tmp_path)))
    return TestClient(server.app)


def send(ws, command, payload=None):
    """Send one command; return (emissions, reply)."""
    ws.send_json({"command": command, "payload": payload or {}})
    emissions = []
    while True:
        message = ws.receive_json()
        if message["type"] in REPLY_TYPES:
            return emissions, message
        emissions.append(message)


class TestHttp:
    """Test suite for plain HTTP endpoints"""

    def test_health(self, client):
        """Test the health endpoint reports the engine version"""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_state_before_game(self, client):
        """Test the state endpoint before a game starts"""
        assert client.get("/state").json() == {"started": False}


class TestWebSocket:
    """Test suite for the command socket"""

    def test_new_game_and_end_turn(self, client):
        """Test a game can be started and advanced"""
        with client.websocket_connect("/ws") as ws:
            emissions, reply = send(ws, "NEW_GAME", {"seed": 11, "company_name": "Acme"})
            assert reply["result"]["success"]
            assert reply["state"]["settings"]["company_name"] == "Acme"
            assert any(m["type"] == "NOTIFICATION" for m in emissions)

            emissions, reply = send(ws, "END_TURN")
            assert reply["result"]["success"]
            assert reply["state"]["turn"] == 2
            assert any(m["type"] == "TURN_SUMMARY" for m in emissions)

    def test_allocate_marketing(self, client):
        """Test marketing allocation reaches the engine"""
        with client.websocket_connect("/ws") as ws:
            send(ws, "NEW_GAME", {"seed": 1})
            _, reply = send(ws, "ALLOCATE_MARKETING", {"channel": "search", "amount": 50_000})

            assert reply["result"]["success"]
            assert reply["state"]["company"]["cash"] == 950_000

    def test_validation_error(self, client):
        """Test malformed payloads are rejected before reaching the engine"""
        with client.websocket_connect("/ws") as ws:
            send(ws, "NEW_GAME", {"seed": 1})
            _, reply = send(ws, "ALLOCATE_MARKETING", {"channel": "search", "amount": -5})

            assert reply["type"] == "ERROR"
            assert reply["command"] == "ALLOCATE_MARKETING"

    def test_engine_failure_is_a_result(self, client):
        """Test rejected commands come back as unsuccessful results"""
        with client.websocket_connect("/ws") as ws:
            send(ws, "NEW_GAME", {"seed": 1})
            _, reply = send(ws, "FIRE", {"employee_id": 1})

            assert reply["type"] == "RESULT"
            assert not reply["result"]["success"]
            assert reply["result"]["outcome"] == "invalid_input"

    def test_unknown_command(self, client):
        """Test unknown commands produce an error reply"""
        with client.websocket_connect("/ws") as ws:
            _, reply = send(ws, "SELF_DESTRUCT")

            assert reply["type"] == "ERROR"

    def test_save_and_load(self, client, tmp_path):
        """Test a saved game can be loaded back over the socket"""
        with client.websocket_connect("/ws") as ws:
            send(ws, "NEW_GAME", {"seed": 2})
            send(ws, "END_TURN")
            _, saved = send(ws, "SAVE", {"path": "game.json"})
            assert saved == {"type": "SAVED", "path": os.path.realpath(tmp_path / "game.json")}

            send(ws, "END_TURN")
            _, loaded = send(ws, "LOAD", {"path": "game.json"})
            assert loaded["success"]
            assert loaded["state"]["turn"] == 2

    def test_save_without_game(self, client):
        """Test saving needs a game in progress"""
        with client.websocket_connect("/ws") as ws:
            _, reply = send(ws, "SAVE", {"path": "x.json"})

            assert reply["type"] == "ERROR"

    @pytest.mark.parametrize("path", ["../outside.json", "nested/../../outside.json", "/etc/passwd", ""])
    def test_paths_outside_save_dir_rejected(self, client, tmp_path, path):
        """Test save and load refuse paths that leave the save directory"""
        with client.websocket_connect("/ws") as ws:
            send(ws, "NEW_GAME", {"seed": 2})
            _, saved = send(ws, "SAVE", {"path": path})
            _, loaded = send(ws, "LOAD", {"path": path})

        assert saved["type"] == "ERROR"
        assert loaded["type"] == "ERROR"
        assert not (tmp_path.parent / "outside.json").exists()
