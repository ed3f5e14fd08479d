"""Wire-level shapes of documents stored in the remote store.

Field names follow the stored document keys (``userId``, ``createdAt``...). The
shapes are lenient where a missing value should drop a single entity rather
than the whole record; the codec decides what is required.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import AnyUrl, BaseModel, ConfigDict, Field

from convo_sync.models.enums import AttachmentType


class WireAttachment(BaseModel):
    url: AnyUrl
    type: AttachmentType


class WireRecording(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: Optional[AnyUrl] = None
    duration: float = 0.0
    waveform_samples: List[float] = Field(default_factory=list, alias="waveformSamples")


class WireReply(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    text: str = ""
    attachments: List[Any] = Field(default_factory=list)


class WireMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    text: str = ""
    attachments: List[Any] = Field(default_factory=list)
    reply_message: Optional[Any] = Field(default=None, alias="replyMessage")
    recording: Optional[Any] = None


class WireConversation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    users: List[str] = Field(default_factory=list)
    title: Optional[str] = None
    picture_url: Optional[str] = Field(default=None, alias="pictureURL")
    latest_message: Optional[Any] = Field(default=None, alias="latestMessage")
