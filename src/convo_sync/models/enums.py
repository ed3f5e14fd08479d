"""Shared enums for convo-sync models."""

from __future__ import annotations

from enum import Enum


class SendStatusKind(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


class AttachmentType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"


class LifecycleState(str, Enum):
    NO_CONVERSATION = "NO_CONVERSATION"
    RACING_CREATION = "RACING_CREATION"
    RESOLVED = "RESOLVED"
