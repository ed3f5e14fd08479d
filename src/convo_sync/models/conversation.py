"""Conversation models."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from convo_sync.models.user import User


class Conversation(BaseModel):
    """A set of participants plus the identifier of their message log."""

    id: Optional[str] = None
    participant_ids: List[str] = Field(default_factory=list)
    users: List[User] = Field(default_factory=list)
    title: Optional[str] = None
    picture_url: Optional[str] = None
    latest_message: Optional[Dict[str, Any]] = None

    @classmethod
    def with_users(cls, users: Iterable[User], **kwargs: Any) -> "Conversation":
        users = list(users)
        return cls(participant_ids=[user.id for user in users], users=users, **kwargs)

    @property
    def is_individual(self) -> bool:
        return len(set(self.participant_ids)) == 2

    def has_exactly(self, user_ids: Iterable[str]) -> bool:
        """Return True when the participant set equals ``user_ids``."""
        return set(self.participant_ids) == set(user_ids)
