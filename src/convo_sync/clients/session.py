"""Session/identity providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from convo_sync.models.user import User


class SessionProvider(ABC):
    """Read-only view of who is signed in."""

    @property
    @abstractmethod
    def current_user(self) -> Optional[User]:
        """Return the signed-in user, if any."""

    @property
    def current_user_id(self) -> Optional[str]:
        user = self.current_user
        return user.id if user else None


class StaticSession(SessionProvider):
    """Session pinned to one user for the lifetime of the object."""

    def __init__(self, user: Optional[User]) -> None:
        self._user = user

    @property
    def current_user(self) -> Optional[User]:
        return self._user
