"""User models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class User(BaseModel):
    """Conversation participant, looked up but never mutated here."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    avatar_url: Optional[str] = None
