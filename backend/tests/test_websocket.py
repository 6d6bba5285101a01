"""Tests for the real-time chat socket.

Frames pushed by other connections can interleave with replies, so tests
read until the frame type they expect and use ping/pong as a barrier when
a frame must be processed before the next step.
"""
import pytest
from fastapi import WebSocketDisconnect

from fuelq_chat.chat.hub import hub


def _token(headers):
    return headers["Authorization"].split(" ", 1)[1]


def _auth(ws, headers):
    ws.send_json({"type": "auth", "token": _token(headers)})
    connected = ws.receive_json()
    assert connected["type"] == "connected"
    return connected


def _receive_until(ws, event_type):
    while True:
        event = ws.receive_json()
        if event["type"] == event_type:
            return event


def _sync(ws):
    """Wait until every frame sent so far on ``ws`` has been handled."""
    ws.send_json({"type": "ping"})
    _receive_until(ws, "pong")


class TestHandshake:
    def test_auth_frame_connects(self, client, register):
        alice = register("alice")

        with client.websocket_connect("/ws/chat") as ws:
            assert _auth(ws, alice) == {"type": "connected", "userId": "alice"}

    def test_invalid_token_closes_socket(self, client):
        with client.websocket_connect("/ws/chat") as ws:
            ws.send_json({"type": "auth", "token": "not-a-token"})
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()

        assert exc_info.value.code == 1008

    def test_frames_before_auth_are_refused(self, client):
        with client.websocket_connect("/ws/chat") as ws:
            ws.send_json({"type": "view", "conversation": "room:1"})
            assert ws.receive_json() == {"type": "error", "message": "Authentication required"}

    def test_ping_works_before_auth(self, client):
        with client.websocket_connect("/ws/chat") as ws:
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    def test_second_auth_is_refused(self, client, register):
        alice = register("alice")

        with client.websocket_connect("/ws/chat") as ws:
            _auth(ws, alice)
            ws.send_json({"type": "auth", "token": _token(alice)})
            assert ws.receive_json() == {"type": "error", "message": "Already authenticated"}

    @pytest.mark.parametrize("frame", ["not json", '{"type": "shout"}', '{"type": "typing"}'])
    def test_invalid_frames_keep_connection_open(self, client, register, frame):
        alice = register("alice")

        with client.websocket_connect("/ws/chat") as ws:
            _auth(ws, alice)
            ws.send_text(frame)
            assert ws.receive_json() == {"type": "error", "message": "Invalid frame"}
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

    @pytest.mark.parametrize("frame_type", ["typing", "stop_typing"])
    def test_empty_typing_conversation_is_an_error(self, client, register, frame_type):
        alice = register("alice")

        with client.websocket_connect("/ws/chat") as ws:
            _auth(ws, alice)
            ws.send_json({"type": frame_type, "conversation": ""})
            assert ws.receive_json() == {"type": "error", "message": "Invalid conversation: ''"}
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}
            assert hub.presence.is_online("alice")

    def test_viewing_a_private_room_is_refused(self, client, register):
        alice = register("alice")
        bob = register("bob")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "Secret", "isPrivate": True}).json()

        with client.websocket_connect("/ws/chat") as ws:
            _auth(ws, bob)
            ws.send_json({"type": "view", "conversation": f"room:{room['id']}"})
            assert ws.receive_json() == {"type": "error", "message": "This room is private"}


class TestDelivery:
    def test_message_in_unviewed_room_bumps_unread(self, client, register):
        alice = register("alice")
        bob = register("bob")
        r42 = client.post("/api/chat/rooms", headers=alice, json={"name": "R42"}).json()
        client.post(f"/api/chat/rooms/{r42['id']}/join", headers=bob)
        other = client.post("/api/chat/rooms", headers=bob, json={"name": "Other"}).json()

        with client.websocket_connect("/ws/chat") as bob_ws:
            _auth(bob_ws, bob)
            bob_ws.send_json({"type": "view", "conversation": f"room:{other['id']}"})
            _sync(bob_ws)

            response = client.post(
                f"/api/chat/rooms/{r42['id']}/messages", headers=alice, json={"text": "hello"}
            )
            assert response.status_code == 201

            event = _receive_until(bob_ws, "new_message")
            assert event["message"]["text"] == "hello"
            assert event["message"]["conversation"] == f"room:{r42['id']}"
            assert event["message"]["id"] == response.json()["id"]

        counts = client.get("/api/chat/unread", headers=bob).json()["counts"]
        assert counts == {f"room:{r42['id']}": 1}

    def test_viewer_is_not_counted(self, client, register):
        alice = register("alice")
        bob = register("bob")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "R"}).json()
        client.post(f"/api/chat/rooms/{room['id']}/join", headers=bob)

        with client.websocket_connect("/ws/chat") as bob_ws:
            _auth(bob_ws, bob)
            bob_ws.send_json({"type": "view", "conversation": f"room:{room['id']}"})
            _sync(bob_ws)

            client.post(f"/api/chat/rooms/{room['id']}/messages", headers=alice, json={"text": "seen"})
            assert _receive_until(bob_ws, "new_message")["message"]["text"] == "seen"

        assert client.get("/api/chat/unread", headers=bob).json()["counts"] == {}

    def test_author_other_tab_receives_own_message(self, client, register):
        alice = register("alice")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "R"}).json()

        with client.websocket_connect("/ws/chat") as tab:
            _auth(tab, alice)
            client.post(f"/api/chat/rooms/{room['id']}/messages", headers=alice, json={"text": "mine"})
            event = _receive_until(tab, "new_message")

        assert event["message"]["senderId"] == "alice"
        assert client.get("/api/chat/unread", headers=alice).json()["counts"] == {}

    def test_connection_request_is_pushed(self, client, register):
        alice = register("alice")
        bob = register("bob")

        with client.websocket_connect("/ws/chat") as bob_ws:
            _auth(bob_ws, bob)
            client.post("/api/chat/requests", headers=alice, json={"userId": "bob"})
            event = _receive_until(bob_ws, "connection_request")

        assert event["request"]["id"] == "alice"
        assert event["request"]["name"] == "Alice"


class TestPresenceAndTyping:
    def test_presence_and_typing_between_contacts(self, client, register, connect):
        alice = register("alice")
        bob = register("bob")
        connect("alice", "bob")

        with client.websocket_connect("/ws/chat") as bob_ws:
            _auth(bob_ws, bob)

            with client.websocket_connect("/ws/chat") as alice_ws:
                _auth(alice_ws, alice)
                online = _receive_until(bob_ws, "user_online")
                assert online["user"]["id"] == "alice"
                assert online["user"]["status"] == "online"

                bob_ws.send_json({"type": "view", "conversation": "dm:alice:bob"})
                _sync(bob_ws)

                alice_ws.send_json({"type": "typing", "conversation": "dm:alice:bob"})
                typing = _receive_until(bob_ws, "typing")
                assert typing == {
                    "type": "typing",
                    "conversation": "dm:alice:bob",
                    "userId": "alice",
                    "userName": "Alice",
                }

                alice_ws.send_json({"type": "stop_typing", "conversation": "dm:alice:bob"})
                assert _receive_until(bob_ws, "stop_typing")["userId"] == "alice"

            offline = _receive_until(bob_ws, "user_offline")
            assert offline["user"]["id"] == "alice"
            assert offline["user"]["status"] == "offline"

    def test_http_typing_endpoints(self, client, register):
        alice = register("alice")
        bob = register("bob")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "R"}).json()
        client.post(f"/api/chat/rooms/{room['id']}/join", headers=bob)

        with client.websocket_connect("/ws/chat") as bob_ws:
            _auth(bob_ws, bob)
            bob_ws.send_json({"type": "view", "conversation": f"room:{room['id']}"})
            _sync(bob_ws)

            assert client.post(f"/api/chat/rooms/{room['id']}/typing", headers=alice).status_code == 200
            assert _receive_until(bob_ws, "typing")["userId"] == "alice"
            client.post(f"/api/chat/rooms/{room['id']}/stop-typing", headers=alice)
            assert _receive_until(bob_ws, "stop_typing")["userId"] == "alice"
