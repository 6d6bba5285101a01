"""Tests for optimistic rendering and reconciliation on the client."""
import pytest

from fuelq_chat.client.reconciler import ClientReconciler, DeliveryState, ReconcileError


def server_message(message_id, text="hello", sender="alice", conversation="room:1"):
    return {
        'id': message_id,
        'conversation': conversation,
        'roomId': 1,
        'recipientId': None,
        'senderId': sender,
        'authorName': sender.title(),
        'authorAvatar': None,
        'text': text,
        'file': None,
        'timestamp': '2026-01-01T00:00:00+00:00',
        'likesCount': 0,
        'isLiked': False,
    }


@pytest.fixture
def reconciler():
    return ClientReconciler("alice")


class TestOptimisticSend:
    def test_begin_renders_pending_entry(self, reconciler):
        entry = reconciler.begin("room:1", text="hello")

        assert entry.temp_id.startswith("temp-")
        assert entry.state == DeliveryState.PENDING
        assert entry.own is True
        assert reconciler.entries("room:1") == [entry]

    def test_temp_ids_are_unique(self, reconciler):
        a = reconciler.begin("room:1", text="same")
        b = reconciler.begin("room:1", text="same")

        assert a.temp_id != b.temp_id
        assert len(reconciler.entries()) == 2

    def test_confirm_rekeys_entry(self, reconciler):
        entry = reconciler.begin("room:1", text="hello")

        confirmed = reconciler.confirm(entry.temp_id, server_message(10))

        assert confirmed is entry
        assert entry.key == "10"
        assert entry.state == DeliveryState.SENT
        assert reconciler.get("10") is entry
        assert reconciler.get(entry.temp_id) is entry

    def test_confirm_is_idempotent(self, reconciler):
        entry = reconciler.begin("room:1", text="hello")

        reconciler.confirm(entry.temp_id, server_message(10))
        reconciler.confirm(entry.temp_id, server_message(10))

        assert len(reconciler.entries()) == 1

    def test_push_before_confirm_does_not_duplicate(self, reconciler):
        entry = reconciler.begin("room:1", text="hello")

        reconciler.receive(server_message(10))
        reconciler.confirm(entry.temp_id, server_message(10))

        assert reconciler.entries() == [entry]
        assert entry.message_id == 10

    def test_push_after_confirm_does_not_duplicate(self, reconciler):
        entry = reconciler.begin("room:1", text="hello")

        reconciler.confirm(entry.temp_id, server_message(10))
        reconciler.receive(server_message(10))

        assert reconciler.entries() == [entry]

    def test_identical_content_is_not_merged(self, reconciler):
        entry = reconciler.begin("room:1", text="hello")
        reconciler.receive(server_message(9, text="hello"))
        reconciler.confirm(entry.temp_id, server_message(10, text="hello"))

        assert [e.message_id for e in reconciler.entries()] == [10, 9]


class TestFailure:
    def test_failed_entry_stays_visible(self, reconciler):
        entry = reconciler.begin("room:1", text="hello")

        reconciler.fail(entry.temp_id)

        assert reconciler.entries() == [entry]
        assert entry.failed
        assert reconciler.failed() == [entry]

    def test_retry_keeps_content_and_temp_id(self, reconciler):
        entry = reconciler.begin("room:1", text="hello")
        reconciler.fail(entry.temp_id)

        retried = reconciler.retry(entry.temp_id)

        assert retried is entry
        assert entry.state == DeliveryState.PENDING
        assert entry.text == "hello"
        assert entry.attempts == 2

    def test_retry_only_failed(self, reconciler):
        entry = reconciler.begin("room:1", text="hello")

        with pytest.raises(ReconcileError):
            reconciler.retry(entry.temp_id)
        with pytest.raises(ReconcileError):
            reconciler.retry("temp-unknown")

    def test_fail_after_confirm_is_ignored(self, reconciler):
        entry = reconciler.begin("room:1", text="hello")
        reconciler.confirm(entry.temp_id, server_message(10))

        reconciler.fail(entry.temp_id)

        assert entry.state == DeliveryState.SENT

    def test_unknown_temp_id(self, reconciler):
        with pytest.raises(ReconcileError):
            reconciler.confirm("temp-nope", server_message(1))


class TestReceiveAndLoad:
    def test_receive_deduplicates_by_id(self, reconciler):
        reconciler.receive(server_message(1, sender="bob"))
        reconciler.receive(server_message(1, sender="bob"))

        assert len(reconciler.entries()) == 1
        assert reconciler.entries()[0].own is False

    def test_load_merges_in_id_order_with_unsent_last(self, reconciler):
        reconciler.receive(server_message(5))
        pending = reconciler.begin("room:1", text="draft")

        reconciler.load([server_message(3), server_message(4), server_message(5)])

        assert [e.key for e in reconciler.entries()] == ["3", "4", "5", pending.temp_id]

    def test_entries_filtered_by_conversation(self, reconciler):
        reconciler.receive(server_message(1, conversation="room:1"))
        reconciler.receive(server_message(2, conversation="room:2"))

        assert [e.message_id for e in reconciler.entries("room:2")] == [2]

    def test_set_likes(self, reconciler):
        reconciler.receive(server_message(1))
        reconciler.set_likes(1, 3, True)

        entry = reconciler.get("1")
        assert (entry.likes_count, entry.is_liked) == (3, True)
