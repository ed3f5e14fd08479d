"""Optimistic sending: show the message at once, reconcile its status later."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Set

from convo_sync import constants
from convo_sync.clients.document_store import DocumentStore, DocumentStoreError, messages_path
from convo_sync.clients.session import SessionProvider
from convo_sync.clients.uploader import MediaUploader
from convo_sync.models.enums import AttachmentType, SendStatusKind
from convo_sync.models.message import DraftMessage, MediaRef, Message, SendStatus
from convo_sync.models.user import User
from convo_sync.services.codec import encode_draft
from convo_sync.services.lifecycle_service import ConversationLifecycle
from convo_sync.services.message_list import MessageList
from convo_sync.utils.ids import generate_message_id

LOG = logging.getLogger(__name__)


class OptimisticSendCoordinator:
    """Appends pending messages and drives each one to CONFIRMED or FAILED."""

    def __init__(
        self,
        store: DocumentStore,
        session: SessionProvider,
        uploader: MediaUploader,
        lifecycle: ConversationLifecycle,
        messages: MessageList,
        peers: Sequence[User],
    ) -> None:
        self.store = store
        self.session = session
        self.uploader = uploader
        self.lifecycle = lifecycle
        self.messages = messages
        self.peers: List[User] = list(peers)
        self._tasks: Set["asyncio.Task[str]"] = set()

    def send(self, draft: DraftMessage) -> Optional["asyncio.Task[str]"]:
        """Show ``draft`` as a pending message now and deliver it in the background.

        Returns the delivery task, or None when nobody is signed in. The task
        never raises; failures end up in the message's status.
        """
        user = self.session.current_user
        if user is None:
            LOG.warning("Dropping draft: no signed-in user")
            return None

        message_id = generate_message_id()
        self.messages.append(Message.from_draft(message_id, user, draft))

        task = asyncio.get_running_loop().create_task(self._deliver(message_id, user, draft))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for every in-flight delivery to finish."""
        while True:
            in_flight = [task for task in self._tasks if not task.done()]
            if not in_flight:
                return
            await asyncio.gather(*in_flight, return_exceptions=True)

    async def _deliver(self, message_id: str, user: User, draft: DraftMessage) -> str:
        try:
            await self._deliver_once(message_id, user, draft)
        except Exception:
            LOG.exception("Delivery of message %s failed unexpectedly", message_id)
            current = self.messages.get(message_id)
            # a confirmed write stays confirmed
            if current is not None and current.status.kind == SendStatusKind.PENDING:
                self.messages.set_status(message_id, SendStatus.failed(draft))
        return message_id

    async def _deliver_once(self, message_id: str, user: User, draft: DraftMessage) -> None:
        # only individual conversations are created lazily; groups exist before we attach
        if self.lifecycle.conversation_id is None and len(self.peers) == 1:
            await self.lifecycle.create_individual_conversation(self.peers[0])

        record = await self.build_record(draft, user)

        conversation_id = self.lifecycle.conversation_id
        if conversation_id is None:
            LOG.warning("Message %s has no conversation to be written to", message_id)
            self.messages.set_status(message_id, SendStatus.failed(draft))
            return

        try:
            await self.store.set_document(messages_path(conversation_id), message_id, record)
        except DocumentStoreError:
            LOG.warning("Writing message %s failed", message_id, exc_info=True)
            self.messages.set_status(message_id, SendStatus.failed(draft))
        else:
            self.messages.set_status(message_id, SendStatus.confirmed())

        await self._update_latest_message(conversation_id, record)

    async def build_record(self, draft: DraftMessage, user: User) -> Dict[str, Any]:
        """Upload the draft's media and return the record to store."""
        attachments: List[Dict[str, Any]] = []
        for media in draft.medias:
            url = await self.uploader.upload(media)
            if url is None:
                LOG.warning("Leaving out attachment %s, upload failed", media.path)
                continue
            attachments.append({"url": url, "type": media.type.value})

        recording: Optional[Dict[str, Any]] = None
        if draft.recording is not None:
            recording_url = await self.uploader.upload(
                MediaRef(path=draft.recording.path, type=AttachmentType.AUDIO)
            )
            if recording_url is not None:
                recording = {
                    "url": recording_url,
                    "duration": draft.recording.duration,
                    "waveformSamples": list(draft.recording.waveform_samples),
                }

        return encode_draft(draft, user, attachments, recording)

    async def _update_latest_message(self, conversation_id: str, record: Dict[str, Any]) -> None:
        try:
            await self.store.update_document(
                constants.CONVERSATIONS_COLLECTION,
                conversation_id,
                {constants.LATEST_MESSAGE_FIELD: record},
            )
        except DocumentStoreError:
            LOG.warning("Could not update latest message of %s", conversation_id, exc_info=True)
