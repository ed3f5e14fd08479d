"""Message, draft and attachment models."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from convo_sync.models.enums import AttachmentType, SendStatusKind
from convo_sync.models.user import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # naive timestamps are taken to be UTC so ordering never mixes the two kinds
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class Attachment(BaseModel):
    """Resolved media attached to a message."""

    id: str
    url: str
    type: AttachmentType


class Recording(BaseModel):
    """Voice recording attached to a message."""

    url: Optional[str] = None
    duration: float = 0.0
    waveform_samples: List[float] = Field(default_factory=list)


class ReplyMessage(BaseModel):
    """Single-level reference to the message being replied to."""

    id: str
    user: User
    text: str = ""
    attachments: List[Attachment] = Field(default_factory=list)


class MediaRef(BaseModel):
    """Local media picked by the user, not yet uploaded."""

    path: Path
    type: AttachmentType = AttachmentType.IMAGE


class DraftRecording(BaseModel):
    path: Path
    duration: float = 0.0
    waveform_samples: List[float] = Field(default_factory=list)


class DraftMessage(BaseModel):
    """Unsent user input prior to any network interaction."""

    text: str = ""
    medias: List[MediaRef] = Field(default_factory=list)
    reply_message: Optional[ReplyMessage] = None
    recording: Optional[DraftRecording] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("created_at")
    @classmethod
    def normalise_created_at(cls, value: datetime) -> datetime:
        return _as_utc(value)


class SendStatus(BaseModel):
    kind: SendStatusKind
    draft: Optional[DraftMessage] = None

    @classmethod
    def pending(cls) -> "SendStatus":
        return cls(kind=SendStatusKind.PENDING)

    @classmethod
    def confirmed(cls) -> "SendStatus":
        return cls(kind=SendStatusKind.CONFIRMED)

    @classmethod
    def failed(cls, draft: DraftMessage) -> "SendStatus":
        return cls(kind=SendStatusKind.FAILED, draft=draft)


class Message(BaseModel):
    """Message as shown to the user."""

    id: str
    user: User
    created_at: datetime
    text: str = ""
    attachments: List[Attachment] = Field(default_factory=list)
    reply_message: Optional[ReplyMessage] = None
    recording: Optional[Recording] = None
    status: SendStatus = Field(default_factory=SendStatus.confirmed)

    @field_validator("created_at")
    @classmethod
    def normalise_created_at(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @classmethod
    def from_draft(cls, message_id: str, user: User, draft: DraftMessage) -> "Message":
        """Build the optimistic entry shown while the draft is being sent."""
        attachments = [
            Attachment(id=f"{message_id}-{index}", url=media.path.resolve().as_uri(), type=media.type)
            for index, media in enumerate(draft.medias)
        ]
        recording = None
        if draft.recording is not None:
            recording = Recording(
                url=draft.recording.path.resolve().as_uri(),
                duration=draft.recording.duration,
                waveform_samples=list(draft.recording.waveform_samples),
            )
        return cls(
            id=message_id,
            user=user,
            created_at=draft.created_at,
            text=draft.text,
            attachments=attachments,
            reply_message=draft.reply_message,
            recording=recording,
            status=SendStatus.pending(),
        )
