"""User directory kept in the document store."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from convo_sync import constants
from convo_sync.clients.document_store import DocumentStore
from convo_sync.models.user import User

LOG = logging.getLogger(__name__)


class UnknownUserError(RuntimeError):
    """Raised when a user id is not in the directory."""


class UserDirectory:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._users: Dict[str, User] = {}

    @property
    def users(self) -> Dict[str, User]:
        return dict(self._users)

    async def save(self, user_id: str, name: str, avatar_url: Optional[str] = None) -> User:
        await self.store.set_document(
            constants.USERS_COLLECTION, user_id, {"name": name, "avatarURL": avatar_url}
        )
        user = User(id=user_id, name=name, avatar_url=avatar_url)
        self._users[user_id] = user
        LOG.info("Saved user %s", user_id)
        return user

    async def load(self) -> Dict[str, User]:
        """Read every stored user, replacing what was loaded before."""
        documents = await self.store.get_documents(constants.USERS_COLLECTION)
        self._users = {
            doc.id: User(id=doc.id, name=doc.data.get("name") or doc.id, avatar_url=doc.data.get("avatarURL"))
            for doc in documents
        }
        return self.users

    def lookup(self, user_id: str) -> User:
        user = self._users.get(user_id)
        if user is None:
            raise UnknownUserError(f"Unknown user '{user_id}'.")
        return user
