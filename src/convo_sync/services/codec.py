"""Mapping between stored message documents and in-memory models.

Decoding is a filter-map: every function returns ``None`` for an entity it
cannot decode and callers drop it. A bad attachment or reply never costs the
containing message; a bad message never costs the batch.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from convo_sync import constants
from convo_sync.clients.document_store import DocumentSnapshot
from convo_sync.models.conversation import Conversation
from convo_sync.models.message import Attachment, DraftMessage, Message, Recording, ReplyMessage, SendStatus
from convo_sync.models.user import User
from convo_sync.models.wire import WireAttachment, WireConversation, WireMessage, WireRecording, WireReply
from convo_sync.utils.ids import generate_attachment_id

LOG = logging.getLogger(__name__)

UserDirectory = Mapping[str, User]


def user_directory(users: Iterable[User]) -> Dict[str, User]:
    return {user.id: user for user in users}


def decode_attachment(raw: Any) -> Optional[Attachment]:
    try:
        wire = WireAttachment.model_validate(raw)
    except ValidationError:
        LOG.debug("Dropping malformed attachment %r", raw)
        return None
    return Attachment(id=generate_attachment_id(), url=str(wire.url), type=wire.type)


def decode_attachments(raw: Iterable[Any]) -> List[Attachment]:
    return [attachment for attachment in map(decode_attachment, raw) if attachment is not None]


def decode_recording(raw: Any) -> Optional[Recording]:
    if raw is None:
        return None
    try:
        wire = WireRecording.model_validate(raw)
    except ValidationError:
        LOG.debug("Dropping malformed recording %r", raw)
        return None
    return Recording(
        url=str(wire.url) if wire.url is not None else None,
        duration=wire.duration,
        waveform_samples=wire.waveform_samples,
    )


def decode_reply(raw: Any, users: UserDirectory) -> Optional[ReplyMessage]:
    if raw is None:
        return None
    try:
        wire = WireReply.model_validate(raw)
    except ValidationError:
        LOG.debug("Dropping malformed reply %r", raw)
        return None
    user = users.get(wire.user_id) if wire.user_id else None
    if not wire.id or user is None:
        return None
    return ReplyMessage(id=wire.id, user=user, text=wire.text, attachments=decode_attachments(wire.attachments))


def decode_message(document: DocumentSnapshot, users: UserDirectory) -> Optional[Message]:
    """Decode one stored message, or return None when it cannot be shown."""
    if not document.id:
        return None
    try:
        wire = WireMessage.model_validate(document.data)
    except ValidationError:
        LOG.debug("Dropping malformed message %s", document.id)
        return None
    if wire.created_at is None or wire.user_id is None:
        return None
    user = users.get(wire.user_id)
    if user is None:
        LOG.debug("Dropping message %s from unknown user %s", document.id, wire.user_id)
        return None

    return Message(
        id=document.id,
        user=user,
        created_at=wire.created_at,
        text=wire.text,
        attachments=decode_attachments(wire.attachments),
        reply_message=decode_reply(wire.reply_message, users),
        recording=decode_recording(wire.recording),
        status=SendStatus.confirmed(),
    )


def decode_messages(documents: Iterable[DocumentSnapshot], users: UserDirectory) -> List[Message]:
    return [message for message in (decode_message(doc, users) for doc in documents) if message is not None]


def decode_conversation(document: DocumentSnapshot, users: UserDirectory) -> Optional[Conversation]:
    if not document.id:
        return None
    try:
        wire = WireConversation.model_validate(document.data)
    except ValidationError:
        LOG.debug("Dropping malformed conversation %s", document.id)
        return None
    latest = wire.latest_message if isinstance(wire.latest_message, dict) else None
    return Conversation(
        id=document.id,
        participant_ids=wire.users,
        users=[users[user_id] for user_id in wire.users if user_id in users],
        title=wire.title,
        picture_url=wire.picture_url,
        latest_message=latest,
    )


def encode_attachment(attachment: Attachment) -> Dict[str, Any]:
    return {"url": attachment.url, "type": attachment.type.value}


def encode_reply(reply: ReplyMessage) -> Dict[str, Any]:
    return {
        "id": reply.id,
        "userId": reply.user.id,
        "text": reply.text,
        "attachments": [encode_attachment(attachment) for attachment in reply.attachments],
    }


def encode_draft(
    draft: DraftMessage,
    current_user: User,
    attachments: Iterable[Dict[str, Any]] = (),
    recording: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the stored record for ``draft``.

    ``attachments`` are the ``{url, type}`` records of media that were uploaded
    successfully; ``recording`` is the uploaded recording record, if any.
    """
    return {
        "userId": current_user.id,
        constants.CREATED_AT_FIELD: draft.created_at,
        "text": draft.text,
        "attachments": list(attachments),
        "replyMessage": encode_reply(draft.reply_message) if draft.reply_message else None,
        "recording": recording,
    }
