"""Tests for the chat command-line client."""
from unittest.mock import MagicMock, patch

import pytest
import requests

from fuelq_chat.cli import ChatCLI, build_parser, main


def _response(payload, status=200):
    response = MagicMock()
    response.json.return_value = payload
    if status >= 400:
        error = requests.exceptions.HTTPError(f"{status} Error")
        error.response = response
        response.raise_for_status.side_effect = error
    return response


class TestTargets:
    def test_room_and_direct_targets(self):
        assert ChatCLI._target_path("room:12") == "/chat/rooms/12"
        assert ChatCLI._target_path("@bob") == "/chat/direct/bob"

    @pytest.mark.parametrize("target", ["12", "room:x", "@", "bob"])
    def test_bad_target_exits(self, target):
        with pytest.raises(SystemExit):
            ChatCLI._target_path(target)


class TestCommands:
    @patch("fuelq_chat.cli.requests.request")
    def test_send_posts_to_room(self, mock_request, capsys):
        mock_request.return_value = _response({"id": 5, "timestamp": "2026-01-01T00:00:00+00:00"})

        main(["--url", "http://chat.test", "--token", "tok", "send", "room:3", "hello"])

        mock_request.assert_called_once_with(
            "POST",
            "http://chat.test/api/chat/rooms/3/messages",
            timeout=10,
            json={"text": "hello"},
            headers={"Authorization": "Bearer tok"},
        )
        assert "Sent message 5" in capsys.readouterr().out

    @patch("fuelq_chat.cli.requests.request")
    def test_history_prints_messages(self, mock_request, capsys):
        mock_request.return_value = _response({
            "messages": [{
                "id": 8, "timestamp": "2026-01-01T10:00:00+00:00", "authorName": "Bob",
                "text": "", "file": {"name": "plan.pdf"}, "likesCount": 2,
            }],
            "hasMore": True,
        })

        ChatCLI("http://chat.test", "tok").history("@bob", limit=1)

        out = capsys.readouterr().out
        assert "Bob: [file] plan.pdf (+2)" in out
        assert "--before 8" in out

    @patch("fuelq_chat.cli.requests.request")
    def test_error_detail_is_printed(self, mock_request, capsys):
        mock_request.return_value = _response({"detail": "Room name is required"}, status=400)

        with pytest.raises(SystemExit):
            ChatCLI("http://chat.test", "tok").create_room("", "general", "", False)

        assert "Detail: Room name is required" in capsys.readouterr().out


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
