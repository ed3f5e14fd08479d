"""Lazy creation of 1:1 conversations and the race against the peer creating it."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, List, Optional

from convo_sync import constants
from convo_sync.clients.document_store import DocumentStore, DocumentStoreError, ListenerRegistration, QuerySnapshot
from convo_sync.clients.session import SessionProvider
from convo_sync.models.conversation import Conversation
from convo_sync.models.enums import LifecycleState
from convo_sync.models.user import User
from convo_sync.services.codec import decode_conversation, user_directory

LOG = logging.getLogger(__name__)

ResolvedCallback = Callable[[Conversation], None]


class ConversationLifecycle:
    """Tracks whether the controller's conversation exists yet.

    A 1:1 conversation is not created until someone sends the first message.
    Until then a listener watches for the peer creating it; a local send tears
    that listener down before creating the conversation itself. The listener
    is started at most once per instance.
    """

    def __init__(
        self,
        store: DocumentStore,
        session: SessionProvider,
        all_users: Iterable[User],
        on_resolved: ResolvedCallback,
        conversation: Optional[Conversation] = None,
    ) -> None:
        self.store = store
        self.session = session
        self.all_users: List[User] = list(all_users)
        self.on_resolved = on_resolved
        self.state = LifecycleState.NO_CONVERSATION
        self.conversation: Optional[Conversation] = None
        self._race: Optional[ListenerRegistration] = None
        self._race_started = False
        self._peer: Optional[User] = None
        self._creating: Optional["asyncio.Future[Optional[Conversation]]"] = None
        if conversation is not None and conversation.id:
            self._resolve(conversation)

    @property
    def conversation_id(self) -> Optional[str]:
        return self.conversation.id if self.conversation else None

    @property
    def racing(self) -> bool:
        return self._race is not None and self._race.active

    def start_race(self, peer: User) -> None:
        """Watch for the peer creating our 1:1 conversation first."""
        if self.state != LifecycleState.NO_CONVERSATION or self._race_started:
            return
        user_id = self.session.current_user_id
        if user_id is None:
            LOG.warning("No signed-in user; not watching for conversation with %s", peer.id)
            return
        self._race_started = True
        self._peer = peer
        self.state = LifecycleState.RACING_CREATION
        self._race = self.store.query_where_array_contains(
            constants.CONVERSATIONS_COLLECTION,
            constants.PARTICIPANTS_FIELD,
            user_id,
            self._on_conversations,
        )

    def cancel_race(self) -> None:
        """Stop watching for peer-created conversations. Safe to call repeatedly."""
        registration, self._race = self._race, None
        if registration is None:
            return
        registration.remove()
        if self.state == LifecycleState.RACING_CREATION:
            self.state = LifecycleState.NO_CONVERSATION

    async def create_individual_conversation(self, peer: User) -> Optional[Conversation]:
        """Create the 1:1 conversation with ``peer`` remotely.

        Returns None when creation failed; the race listener is not restarted.
        """
        if self.state == LifecycleState.RESOLVED:
            return self.conversation
        if self._creating is not None:
            return await asyncio.shield(self._creating)
        self._creating = asyncio.ensure_future(self._create(peer))
        try:
            return await asyncio.shield(self._creating)
        finally:
            self._creating = None

    async def _create(self, peer: User) -> Optional[Conversation]:
        self.cancel_race()

        participant_ids = list(dict.fromkeys(user.id for user in self.all_users))
        fields = {
            constants.PARTICIPANTS_FIELD: participant_ids,
            "title": peer.name,
        }
        try:
            conversation_id = await self.store.add_document(constants.CONVERSATIONS_COLLECTION, fields)
        except DocumentStoreError:
            LOG.warning("Could not create conversation with %s", peer.id, exc_info=True)
            return None

        conversation = Conversation(
            id=conversation_id,
            participant_ids=participant_ids,
            users=self.all_users,
            title=peer.name,
        )
        LOG.info("Created conversation %s with %s", conversation_id, peer.id)
        self._resolve(conversation)
        return conversation

    def _on_conversations(self, snapshot: Optional[QuerySnapshot], error: Optional[Exception]) -> None:
        if error is not None or snapshot is None:
            LOG.warning("Conversation listener reported an error: %s", error)
            return
        if self.state == LifecycleState.RESOLVED or self._peer is None:
            return
        wanted = {self.session.current_user_id, self._peer.id}
        users = user_directory(self.all_users)
        for document in snapshot.documents:
            conversation = decode_conversation(document, users)
            if conversation is not None and conversation.has_exactly(wanted):
                LOG.info("Conversation %s with %s was created by the peer", conversation.id, self._peer.id)
                self.cancel_race()
                self._resolve(conversation)
                return

    def _resolve(self, conversation: Conversation) -> None:
        if self.state == LifecycleState.RESOLVED:
            return
        self.conversation = conversation
        self.state = LifecycleState.RESOLVED
        self.on_resolved(conversation)
