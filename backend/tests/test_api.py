"""Tests for the HTTP API."""
from unittest.mock import patch

import pytest

from fuelq_chat.chat import routes, uploads
from fuelq_chat.config import MAX_UPLOAD_BYTES


class TestAuth:
    def test_register_and_session(self, client):
        response = client.post("/api/auth/register", json={"username": "alice", "displayName": "Alice"})
        assert response.status_code == 201
        data = response.json()
        assert data["user"] == {"id": "alice", "name": "Alice", "avatar": None, "status": "offline"}

        headers = {"Authorization": f"Bearer {data['token']}"}
        session = client.get("/api/auth/session", headers=headers).json()
        assert session["authenticated"] is True
        assert session["user"]["id"] == "alice"

    def test_duplicate_username(self, client, register):
        register("alice")
        response = client.post("/api/auth/register", json={"username": "alice", "displayName": "Other"})
        assert response.status_code == 409

    @pytest.mark.parametrize("username", ["ab", "has space", "x" * 21, "semi;colon"])
    def test_invalid_username(self, client, username):
        response = client.post("/api/auth/register", json={"username": username, "displayName": "X"})
        assert response.status_code == 400

    def test_logout_revokes_token(self, client, register):
        headers = register("alice")
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/chat/rooms", headers=headers).status_code == 401

    def test_requires_auth(self, client):
        assert client.get("/api/chat/rooms").status_code == 401
        response = client.get("/api/chat/rooms", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized"


class TestRoomsApi:
    def test_create_and_list(self, client, register):
        alice = register("alice")
        bob = register("bob")

        response = client.post("/api/chat/rooms", headers=alice, json={
            "name": "Hydrogen", "description": "H2 economy", "category": "hydrogen", "isPrivate": False,
        })
        assert response.status_code == 201
        room = response.json()
        assert room["isMember"] is True

        rooms = client.get("/api/chat/rooms", headers=bob).json()["rooms"]
        assert [(r["name"], r["isMember"], r["unread"]) for r in rooms] == [("Hydrogen", False, 0)]

    def test_empty_room_name(self, client, register):
        alice = register("alice")
        response = client.post("/api/chat/rooms", headers=alice, json={"name": "  "})
        assert response.status_code == 400
        assert response.json()["detail"] == "Room name is required"

    def test_private_room_is_forbidden_to_outsiders(self, client, register):
        alice = register("alice")
        bob = register("bob")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "Secret", "isPrivate": True}).json()

        assert client.get(f"/api/chat/rooms/{room['id']}/messages", headers=bob).status_code == 403
        assert client.post(f"/api/chat/rooms/{room['id']}/join", headers=bob).status_code == 403
        assert client.get(f"/api/chat/rooms/{room['id']}", headers=bob).status_code == 403

    def test_missing_room(self, client, register):
        alice = register("alice")
        assert client.get("/api/chat/rooms/999/messages", headers=alice).status_code == 404

    def test_settings_and_participants(self, client, register):
        alice = register("alice")
        bob = register("bob")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "Wind"}).json()
        client.post(f"/api/chat/rooms/{room['id']}/join", headers=bob)

        response = client.put(f"/api/chat/rooms/{room['id']}/settings", headers=bob, json={
            "name": "Offshore wind", "category": "wind", "isPrivate": False,
        })
        assert response.status_code == 200
        assert response.json()["name"] == "Offshore wind"

        settings = client.get(f"/api/chat/rooms/{room['id']}/settings", headers=alice).json()
        assert settings["category"] == "wind"

        participants = client.get(f"/api/chat/rooms/{room['id']}/participants", headers=alice).json()
        assert [p["id"] for p in participants["participants"]] == ["alice", "bob"]

    def test_leave_room(self, client, register):
        alice = register("alice")
        bob = register("bob")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "Solar"}).json()

        assert client.post(f"/api/chat/rooms/{room['id']}/leave", headers=bob).status_code == 400
        client.post(f"/api/chat/rooms/{room['id']}/join", headers=bob)
        assert client.post(f"/api/chat/rooms/{room['id']}/leave", headers=bob).status_code == 200


class TestMessagesApi:
    def test_send_list_and_read(self, client, register):
        alice = register("alice")
        bob = register("bob")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "R42"}).json()
        client.post(f"/api/chat/rooms/{room['id']}/join", headers=bob)

        for text in ("one", "two", "three"):
            response = client.post(f"/api/chat/rooms/{room['id']}/messages", headers=alice, json={"text": text})
            assert response.status_code == 201

        page = client.get(f"/api/chat/rooms/{room['id']}/messages?limit=2", headers=bob).json()
        assert [m["text"] for m in page["messages"]] == ["two", "three"]
        assert page["hasMore"] is True

        older = client.get(
            f"/api/chat/rooms/{room['id']}/messages",
            params={"before": page["messages"][0]["id"], "limit": 2},
            headers=bob,
        ).json()
        assert [m["text"] for m in older["messages"]] == ["one"]
        assert older["hasMore"] is False

        key = f"room:{room['id']}"
        assert client.get("/api/chat/unread", headers=bob).json()["counts"] == {key: 3}
        read = client.post(f"/api/chat/rooms/{room['id']}/read", headers=bob).json()
        assert read == {"status": "ok", "unread": 0}
        assert client.get("/api/chat/unread", headers=bob).json()["counts"] == {}

    def test_empty_message_rejected(self, client, register):
        alice = register("alice")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "R"}).json()

        response = client.post(f"/api/chat/rooms/{room['id']}/messages", headers=alice, json={"text": "   "})

        assert response.status_code == 400
        assert response.json()["detail"] == "Message text is required"

    def test_posting_joins_public_room(self, client, register):
        alice = register("alice")
        bob = register("bob")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "Open"}).json()

        client.post(f"/api/chat/rooms/{room['id']}/messages", headers=bob, json={"text": "hi"})

        info = client.get(f"/api/chat/rooms/{room['id']}", headers=bob).json()
        assert info["isMember"] is True
        assert info["participantCount"] == 2

    def test_likes(self, client, register):
        alice = register("alice")
        bob = register("bob")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "R"}).json()
        message = client.post(f"/api/chat/rooms/{room['id']}/messages", headers=alice, json={"text": "x"}).json()

        liked = client.post(f"/api/chat/messages/{message['id']}/like", headers=bob).json()
        again = client.post(f"/api/chat/messages/{message['id']}/like", headers=bob).json()
        unliked = client.post(f"/api/chat/messages/{message['id']}/unlike", headers=bob).json()

        assert liked == again == {"likesCount": 1, "isLiked": True}
        assert unliked == {"likesCount": 0, "isLiked": False}
        assert client.post("/api/chat/messages/999/like", headers=bob).status_code == 404

    def test_search(self, client, register):
        alice = register("alice")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "R"}).json()
        client.post(f"/api/chat/rooms/{room['id']}/messages", headers=alice, json={"text": "geothermal heat"})
        client.post(f"/api/chat/rooms/{room['id']}/messages", headers=alice, json={"text": "solar"})

        result = client.get("/api/chat/search", params={"q": "heat"}, headers=alice).json()

        assert result["total"] == 1
        assert result["messages"][0]["text"] == "geothermal heat"


class TestDirectApi:
    def test_request_accept_and_message(self, client, register):
        alice = register("alice")
        bob = register("bob")

        assert client.post("/api/chat/direct/bob/messages", headers=alice, json={"text": "hi"}).status_code == 403

        response = client.post("/api/chat/requests", headers=alice, json={"userId": "bob"})
        assert response.status_code == 201
        assert client.post("/api/chat/requests", headers=alice, json={"userId": "bob"}).status_code == 409

        pending = client.get("/api/chat/requests", headers=bob).json()["requests"]
        assert [r["id"] for r in pending] == ["alice"]

        accepted = client.post("/api/chat/accept-request", headers=bob, json={"userId": "alice"}).json()
        assert accepted["user"]["id"] == "alice"

        sent = client.post("/api/chat/direct/bob/messages", headers=alice, json={"text": "hi"})
        assert sent.status_code == 201
        assert sent.json()["conversation"] == "dm:alice:bob"

        contacts = client.get("/api/chat/direct", headers=bob).json()["contacts"]
        assert contacts == [{
            "id": "alice", "name": "Alice", "avatar": None, "status": "offline",
            "conversation": "dm:alice:bob", "unread": 1,
        }]

        history = client.get("/api/chat/direct/alice/messages", headers=bob).json()
        assert [m["text"] for m in history["messages"]] == ["hi"]

        client.post("/api/chat/direct/alice/read", headers=bob)
        assert client.get("/api/chat/unread", headers=bob).json()["counts"] == {}

    def test_decline(self, client, register):
        bob = register("bob")
        carol = register("carol")
        client.post("/api/chat/requests", headers=carol, json={"userId": "bob"})

        assert client.post("/api/chat/decline-request", headers=bob, json={"userId": "carol"}).status_code == 200
        assert client.post("/api/chat/decline-request", headers=bob, json={"userId": "carol"}).status_code == 404

    def test_cannot_message_self(self, client, register):
        alice = register("alice")
        response = client.post("/api/chat/direct/alice/messages", headers=alice, json={"text": "me"})
        assert response.status_code == 400


class TestUploadApi:
    def test_upload_to_room(self, client, register, chat_db):
        alice = register("alice")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "Files"}).json()

        response = client.post(
            "/api/chat/upload",
            headers=alice,
            data={"roomId": str(room["id"])},
            files={"file": ("panel.png", b"\x89PNG fake", "image/png")},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["file"]["name"] == "panel.png"
        assert body["file"]["size"] == 9
        assert body["message"]["file"]["url"].startswith("/uploads/")
        stored = chat_db / "uploads" / body["file"]["url"].rsplit("/", 1)[1]
        assert stored.read_bytes() == b"\x89PNG fake"

    def test_upload_needs_exactly_one_target(self, client, register):
        alice = register("alice")
        response = client.post(
            "/api/chat/upload",
            headers=alice,
            files={"file": ("a.txt", b"abc", "text/plain")},
        )
        assert response.status_code == 400

    def test_upload_too_large(self, client, register):
        alice = register("alice")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "Files"}).json()

        response = client.post(
            "/api/chat/upload",
            headers=alice,
            data={"roomId": str(room["id"])},
            files={"file": ("big.bin", b"\0" * (MAX_UPLOAD_BYTES + 1), "application/octet-stream")},
        )

        assert response.status_code == 413
        history = client.get(f"/api/chat/rooms/{room['id']}/messages", headers=alice).json()
        assert history["messages"] == []

    def test_oversized_upload_is_not_read_whole(self, client, register, monkeypatch):
        monkeypatch.setattr(routes, "MAX_UPLOAD_BYTES", 8)
        monkeypatch.setattr(uploads, "MAX_UPLOAD_BYTES", 8)
        alice = register("alice")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "Files"}).json()

        with patch.object(routes, "save_upload", wraps=uploads.save_upload) as save:
            response = client.post(
                "/api/chat/upload",
                headers=alice,
                data={"roomId": str(room["id"])},
                files={"file": ("big.bin", b"\0" * 1000, "application/octet-stream")},
            )

        assert response.status_code == 413
        assert len(save.call_args.args[1]) == 9

    def test_forbidden_upload_is_not_stored(self, client, register, chat_db):
        alice = register("alice")
        bob = register("bob")
        room = client.post("/api/chat/rooms", headers=alice, json={"name": "Secret", "isPrivate": True}).json()

        response = client.post(
            "/api/chat/upload",
            headers=bob,
            data={"roomId": str(room["id"])},
            files={"file": ("a.txt", b"abc", "text/plain")},
        )

        assert response.status_code == 403
        assert not list((chat_db / "uploads").glob("*"))


class TestUsersApi:
    def test_list_users(self, client, register):
        alice = register("alice")
        register("bob")

        users = client.get("/api/users", headers=alice).json()["users"]
        assert [u["id"] for u in users] == ["alice", "bob"]
        assert client.get("/api/users/nobody", headers=alice).status_code == 404

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}
