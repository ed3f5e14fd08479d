"""Conversation controller tying the lifecycle, message stream and sender together."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from convo_sync.clients.document_store import DocumentStore
from convo_sync.clients.session import SessionProvider
from convo_sync.clients.uploader import MediaUploader
from convo_sync.models.conversation import Conversation
from convo_sync.models.enums import LifecycleState, SendStatusKind
from convo_sync.models.message import DraftMessage
from convo_sync.models.user import User
from convo_sync.services.lifecycle_service import ConversationLifecycle
from convo_sync.services.message_list import MessageList
from convo_sync.services.send_service import OptimisticSendCoordinator
from convo_sync.services.stream_service import MessageStreamSubscriber

LOG = logging.getLogger(__name__)


class ConversationController:
    """Local, ordered view of one conversation kept in sync with the store.

    Must be created and used from the event loop the store delivers
    snapshots on. Use :meth:`for_user` to open a 1:1 conversation that may not
    exist yet, or :meth:`for_conversation` for one that already does.
    """

    def __init__(
        self,
        store: DocumentStore,
        session: SessionProvider,
        uploader: MediaUploader,
        peers: Sequence[User],
        all_users: Sequence[User],
        conversation: Optional[Conversation] = None,
    ) -> None:
        self.store = store
        self.session = session
        self.users: List[User] = list(peers)
        self.all_users: List[User] = list(all_users)
        self.messages = MessageList()
        self.stream = MessageStreamSubscriber(store)
        self.lifecycle = ConversationLifecycle(
            store,
            session,
            self.all_users,
            on_resolved=self._update_for_conversation,
            conversation=conversation,
        )
        self.sender = OptimisticSendCoordinator(
            store, session, uploader, self.lifecycle, self.messages, self.users
        )
        if self.lifecycle.conversation is None and len(self.users) == 1:
            # resolved later, by the peer's first message or by ours
            self.lifecycle.start_race(self.users[0])

    @classmethod
    def for_user(
        cls,
        peer: User,
        store: DocumentStore,
        session: SessionProvider,
        uploader: MediaUploader,
    ) -> "ConversationController":
        all_users = [peer]
        current = session.current_user
        if current is not None and current.id != peer.id:
            all_users.append(current)
        return cls(store, session, uploader, peers=[peer], all_users=all_users)

    @classmethod
    def for_conversation(
        cls,
        conversation: Conversation,
        store: DocumentStore,
        session: SessionProvider,
        uploader: MediaUploader,
    ) -> "ConversationController":
        current_id = session.current_user_id
        peers = [user for user in conversation.users if user.id != current_id]
        return cls(
            store,
            session,
            uploader,
            peers=peers,
            all_users=conversation.users,
            conversation=conversation,
        )

    @property
    def conversation(self) -> Optional[Conversation]:
        return self.lifecycle.conversation

    @property
    def conversation_id(self) -> Optional[str]:
        return self.lifecycle.conversation_id

    @property
    def state(self) -> LifecycleState:
        return self.lifecycle.state

    def send(self, draft: DraftMessage) -> Optional["asyncio.Task[str]"]:
        """Send ``draft``; the pending message is listed before this returns."""
        return self.sender.send(draft)

    def retry(self, message_id: str) -> Optional["asyncio.Task[str]"]:
        """Resend the draft kept by a failed message under a fresh id."""
        message = self.messages.get(message_id)
        if message is None or message.status.kind != SendStatusKind.FAILED or message.status.draft is None:
            return None
        self.messages.remove(message_id)
        draft = message.status.draft.model_copy(update={"created_at": datetime.now(timezone.utc)})
        return self.sender.send(draft)

    async def wait_idle(self) -> None:
        await self.sender.wait_idle()

    def close(self) -> None:
        """Release every subscription held by this controller."""
        self.lifecycle.cancel_race()
        self.stream.unsubscribe()

    def _update_for_conversation(self, conversation: Conversation) -> None:
        if not conversation.id:
            return
        LOG.debug("Attaching to conversation %s", conversation.id)
        self.stream.subscribe(conversation.id, self.all_users, self.messages.replace)
