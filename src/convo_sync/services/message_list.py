"""Observable, id-keyed ordered message list."""

from __future__ import annotations

import itertools
import logging
from collections import OrderedDict
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from convo_sync.models.message import Message, SendStatus

LOG = logging.getLogger(__name__)

MessagesObserver = Callable[[List[Message]], None]


class MessageList:
    """Messages of the active conversation, keyed by id and kept in display order.

    Every mutation republishes the whole list to observers.
    """

    def __init__(self) -> None:
        self._entries: "OrderedDict[str, Message]" = OrderedDict()
        self._observers: Dict[int, MessagesObserver] = {}
        self._keys = itertools.count()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._entries.values()))

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._entries

    @property
    def messages(self) -> List[Message]:
        return list(self._entries.values())

    def get(self, message_id: str) -> Optional[Message]:
        return self._entries.get(message_id)

    def subscribe(self, observer: MessagesObserver) -> Callable[[], None]:
        """Register ``observer`` and return an idempotent unsubscribe callable."""
        key = next(self._keys)
        self._observers[key] = observer

        def unsubscribe() -> None:
            self._observers.pop(key, None)

        return unsubscribe

    def append(self, message: Message) -> None:
        self._entries.pop(message.id, None)
        self._entries[message.id] = message
        self._publish()

    def remove(self, message_id: str) -> Optional[Message]:
        removed = self._entries.pop(message_id, None)
        if removed is not None:
            self._publish()
        return removed

    def set_status(self, message_id: str, status: SendStatus) -> bool:
        """Update the status of ``message_id``; a missing id is a no-op."""
        message = self._entries.get(message_id)
        if message is None:
            LOG.debug("Status update for %s skipped, message no longer listed", message_id)
            return False
        # published lists keep the old copy
        self._entries[message_id] = message.model_copy(update={"status": status})
        self._publish()
        return True

    def replace(self, confirmed: Iterable[Message]) -> None:
        """Install a snapshot from the message stream.

        Snapshot entries win over local copies with the same id. Local entries
        the snapshot does not contain yet, such as failed sends kept for retry,
        stay listed and are slotted in by creation time.
        """
        snapshot = list(confirmed)
        known = {message.id for message in snapshot}
        local_only = [message for message in self._entries.values() if message.id not in known]
        merged: List[Message] = []
        remaining = iter(local_only)
        carry = next(remaining, None)
        for message in snapshot:
            while carry is not None and carry.created_at < message.created_at:
                merged.append(carry)
                carry = next(remaining, None)
            merged.append(message)
        if carry is not None:
            merged.append(carry)
            merged.extend(remaining)

        self._entries = OrderedDict((message.id, message) for message in merged)
        self._publish()

    def _publish(self) -> None:
        snapshot = self.messages
        for observer in list(self._observers.values()):
            observer(snapshot)
