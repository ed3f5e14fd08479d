from datetime import datetime, timezone
from pathlib import Path

from convo_sync.clients.document_store import DocumentSnapshot
from convo_sync.models.enums import AttachmentType, SendStatusKind
from convo_sync.models.message import Attachment, DraftMessage, MediaRef, ReplyMessage
from convo_sync.services.codec import (
    decode_conversation,
    decode_message,
    decode_messages,
    encode_draft,
    user_directory,
)

CREATED = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)


def _record(**overrides):
    record = {
        "userId": "alice",
        "createdAt": CREATED.isoformat(),
        "text": "hello",
        "attachments": [],
        "replyMessage": None,
    }
    record.update(overrides)
    return record


def test_decode_message_resolves_author_and_marks_confirmed(alice, bob):
    users = user_directory([alice, bob])

    message = decode_message(DocumentSnapshot(id="m1", data=_record()), users)

    assert message is not None
    assert message.id == "m1"
    assert message.user == alice
    assert message.created_at == CREATED
    assert message.text == "hello"
    assert message.status.kind == SendStatusKind.CONFIRMED


def test_decode_message_requires_id_timestamp_and_known_author(alice):
    users = user_directory([alice])

    assert decode_message(DocumentSnapshot(id="", data=_record()), users) is None
    assert decode_message(DocumentSnapshot(id="m1", data=_record(createdAt=None)), users) is None
    assert decode_message(DocumentSnapshot(id="m1", data=_record(userId="mallory")), users) is None


def test_decode_messages_skips_bad_records_but_keeps_siblings(alice, bob):
    documents = [
        DocumentSnapshot(id="m1", data=_record(text="first")),
        DocumentSnapshot(id="m2", data=_record(userId="mallory", text="ghost")),
        DocumentSnapshot(id="m3", data={"text": 42}),
        DocumentSnapshot(id="m4", data=_record(userId="bob", text="second")),
    ]

    messages = decode_messages(documents, user_directory([alice, bob]))

    assert [message.text for message in messages] == ["first", "second"]


def test_unresolvable_reply_is_dropped_without_losing_message(alice):
    reply = {"id": "m0", "userId": "mallory", "text": "original", "attachments": []}

    message = decode_message(DocumentSnapshot(id="m1", data=_record(replyMessage=reply)), user_directory([alice]))

    assert message is not None
    assert message.reply_message is None


def test_reply_without_id_is_dropped(alice):
    reply = {"userId": "alice", "text": "original"}

    message = decode_message(DocumentSnapshot(id="m1", data=_record(replyMessage=reply)), user_directory([alice]))

    assert message is not None
    assert message.reply_message is None


def test_reply_with_attachments_is_decoded(alice, bob):
    reply = {
        "id": "m0",
        "userId": "bob",
        "text": "look",
        "attachments": [{"url": "https://cdn.example.com/a.png", "type": "image"}],
    }

    message = decode_message(DocumentSnapshot(id="m1", data=_record(replyMessage=reply)), user_directory([alice, bob]))

    assert message.reply_message is not None
    assert message.reply_message.user == bob
    assert message.reply_message.text == "look"
    assert len(message.reply_message.attachments) == 1


def test_malformed_attachments_are_dropped_individually(alice):
    attachments = [
        {"url": "https://cdn.example.com/ok.png", "type": "image"},
        {"url": "not a url", "type": "image"},
        {"url": "https://cdn.example.com/clip.mp4", "type": "hologram"},
        {"type": "video"},
        {"url": "https://cdn.example.com/clip.mp4", "type": "video"},
    ]

    message = decode_message(
        DocumentSnapshot(id="m1", data=_record(attachments=attachments)), user_directory([alice])
    )

    assert message is not None
    assert [attachment.type for attachment in message.attachments] == [AttachmentType.IMAGE, AttachmentType.VIDEO]
    assert len({attachment.id for attachment in message.attachments}) == 2


def test_recording_is_decoded_and_malformed_one_dropped(alice):
    users = user_directory([alice])
    good = {"url": "https://cdn.example.com/voice.m4a", "duration": 3.5, "waveformSamples": [0.1, 0.4]}

    with_recording = decode_message(DocumentSnapshot(id="m1", data=_record(recording=good)), users)
    broken = decode_message(DocumentSnapshot(id="m2", data=_record(recording={"duration": "long"})), users)

    assert with_recording.recording.duration == 3.5
    assert with_recording.recording.waveform_samples == [0.1, 0.4]
    assert broken is not None
    assert broken.recording is None


def test_encode_draft_uses_plain_fields(alice, bob):
    reply = ReplyMessage(
        id="m0",
        user=bob,
        text="earlier",
        attachments=[Attachment(id="a1", url="https://cdn.example.com/a.png", type=AttachmentType.IMAGE)],
    )
    draft = DraftMessage(text="hi", reply_message=reply, created_at=CREATED)

    record = encode_draft(draft, alice, [{"url": "https://cdn.example.com/b.png", "type": "image"}])

    assert record["userId"] == "alice"
    assert record["createdAt"] == CREATED
    assert record["text"] == "hi"
    assert record["attachments"] == [{"url": "https://cdn.example.com/b.png", "type": "image"}]
    assert record["replyMessage"] == {
        "id": "m0",
        "userId": "bob",
        "text": "earlier",
        "attachments": [{"url": "https://cdn.example.com/a.png", "type": "image"}],
    }
    assert record["recording"] is None


def test_encoded_draft_decodes_back_without_loss(alice, bob):
    reply = ReplyMessage(id="m0", user=bob, text="earlier")
    draft = DraftMessage(
        text="see attached",
        medias=[MediaRef(path=Path("a.png")), MediaRef(path=Path("b.mp4"), type=AttachmentType.VIDEO)],
        reply_message=reply,
        created_at=CREATED,
    )
    uploaded = [
        {"url": "https://cdn.example.com/a.png", "type": "image"},
        {"url": "https://cdn.example.com/b.mp4", "type": "video"},
    ]

    record = encode_draft(draft, alice, uploaded)
    message = decode_message(DocumentSnapshot(id="m1", data=record), user_directory([alice, bob]))

    assert message.text == draft.text
    assert len(message.attachments) == len(draft.medias)
    assert message.reply_message is not None
    assert message.reply_message.id == "m0"
    assert message.user == alice


def test_decode_conversation_keeps_raw_participants(alice, bob):
    document = DocumentSnapshot(
        id="c1",
        data={"users": ["alice", "bob", "zed"], "title": "Team", "latestMessage": {"text": "yo"}},
    )

    conversation = decode_conversation(document, user_directory([alice, bob]))

    assert conversation.id == "c1"
    assert conversation.participant_ids == ["alice", "bob", "zed"]
    assert conversation.users == [alice, bob]
    assert conversation.title == "Team"
    assert conversation.latest_message == {"text": "yo"}
    assert not conversation.is_individual
