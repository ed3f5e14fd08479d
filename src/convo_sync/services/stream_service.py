"""Live subscription to a conversation's message log."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional

from convo_sync import constants
from convo_sync.clients.document_store import (
    DocumentStore,
    ListenerRegistration,
    QuerySnapshot,
    messages_path,
)
from convo_sync.models.message import Message
from convo_sync.models.user import User
from convo_sync.services.codec import decode_messages, user_directory

LOG = logging.getLogger(__name__)

MessagesCallback = Callable[[List[Message]], None]


class MessageStreamSubscriber:
    """Keeps at most one message subscription open and republishes full snapshots."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._registration: Optional[ListenerRegistration] = None
        self._conversation_id: Optional[str] = None

    @property
    def active(self) -> bool:
        return self._registration is not None and self._registration.active

    def subscribe(self, conversation_id: str, known_users: Iterable[User], on_update: MessagesCallback) -> None:
        """Attach to ``conversation_id``, releasing any previous subscription first."""
        self.unsubscribe()
        users = user_directory(known_users)

        def handle(snapshot: Optional[QuerySnapshot], error: Optional[Exception]) -> None:
            if error is not None or snapshot is None:
                LOG.warning("Message stream for %s reported an error: %s", conversation_id, error)
                return
            on_update(decode_messages(snapshot.documents, users))

        self._conversation_id = conversation_id
        self._registration = self.store.query_ordered(
            messages_path(conversation_id), constants.CREATED_AT_FIELD, handle
        )
        LOG.debug("Subscribed to messages of %s", conversation_id)

    def unsubscribe(self) -> None:
        registration, self._registration = self._registration, None
        if registration is not None:
            registration.remove()
            LOG.debug("Released message stream of %s", self._conversation_id)
        self._conversation_id = None
