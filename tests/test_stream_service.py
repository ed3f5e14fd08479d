import pytest

from convo_sync.clients.document_store import ListenerRegistration, messages_path
from convo_sync.services.stream_service import MessageStreamSubscriber


def _record(user_id, stamp, text):
    return {"userId": user_id, "createdAt": stamp, "text": text, "attachments": []}


@pytest.mark.asyncio
async def test_publishes_full_decoded_list_on_every_change(store, alice, bob):
    path = messages_path("c1")
    await store.set_document(path, "m2", _record("bob", "2026-10-18T10:01:00Z", "second"))
    await store.set_document(path, "m1", _record("alice", "2026-10-18T10:00:00Z", "first"))
    await store.set_document(path, "bad", _record("mallory", "2026-10-18T10:02:00Z", "ghost"))
    published = []
    subscriber = MessageStreamSubscriber(store)

    subscriber.subscribe("c1", [alice, bob], published.append)
    await store.flush()
    await store.set_document(path, "m3", _record("alice", "2026-10-18T10:03:00Z", "third"))
    await store.flush()

    assert [[m.text for m in snapshot] for snapshot in published] == [
        ["first", "second"],
        ["first", "second", "third"],
    ]


@pytest.mark.asyncio
async def test_subscribing_again_releases_previous_stream(store, alice):
    published = []
    subscriber = MessageStreamSubscriber(store)

    subscriber.subscribe("c1", [alice], lambda messages: published.append(("c1", messages)))
    subscriber.subscribe("c2", [alice], lambda messages: published.append(("c2", messages)))
    await store.set_document(messages_path("c1"), "m1", _record("alice", "2026-10-18T10:00:00Z", "old"))
    await store.flush()

    assert subscriber.conversation_id == "c2"
    assert store.listener_count(messages_path("c1")) == 0
    assert [name for name, _ in published] == ["c2"]


@pytest.mark.asyncio
async def test_unsubscribe_is_idempotent(store, alice):
    subscriber = MessageStreamSubscriber(store)
    subscriber.subscribe("c1", [alice], lambda messages: None)

    subscriber.unsubscribe()
    subscriber.unsubscribe()

    assert not subscriber.active
    assert store.listener_count() == 0


@pytest.mark.asyncio
async def test_transport_errors_are_swallowed(store, alice, monkeypatch):
    published = []
    subscriber = MessageStreamSubscriber(store)
    captured = {}

    def fake_query(collection_path, order_field, listener):
        captured["listener"] = listener
        return ListenerRegistration()

    monkeypatch.setattr(store, "query_ordered", fake_query)
    subscriber.subscribe("c1", [alice], published.append)

    captured["listener"](None, RuntimeError("connection reset"))

    assert published == []
