"""Remote document store interface and the SQLite-backed local implementation."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json
from sqlalchemy.exc import SQLAlchemyError

from convo_sync import constants
from convo_sync.clients.database import Document, session_scope
from convo_sync.utils.ids import generate_document_id

LOG = logging.getLogger(__name__)

_TIMESTAMP = TypeAdapter(datetime)


class DocumentStoreError(RuntimeError):
    """Raised when the store cannot complete a read or write."""


@dataclass(frozen=True)
class DocumentSnapshot:
    id: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class QuerySnapshot:
    documents: List[DocumentSnapshot] = field(default_factory=list)


SnapshotListener = Callable[[Optional[QuerySnapshot], Optional[Exception]], None]


class ListenerRegistration:
    """Handle for a live query; ``remove()`` is synchronous and idempotent."""

    def __init__(self, on_remove: Optional[Callable[[], None]] = None) -> None:
        self._on_remove = on_remove
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def remove(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._on_remove is not None:
            self._on_remove()
            self._on_remove = None


def messages_path(conversation_id: str) -> str:
    return f"{constants.CONVERSATIONS_COLLECTION}/{conversation_id}/{constants.MESSAGES_COLLECTION}"


class DocumentStore(ABC):
    """Document/collection store with push-based queries."""

    @abstractmethod
    def query_ordered(
        self, collection_path: str, order_field: str, listener: SnapshotListener
    ) -> ListenerRegistration:
        """Listen to a collection ordered ascending by ``order_field``."""

    @abstractmethod
    def query_where_array_contains(
        self, collection_path: str, field_name: str, value: Any, listener: SnapshotListener
    ) -> ListenerRegistration:
        """Listen to documents whose array ``field_name`` contains ``value``."""

    @abstractmethod
    async def add_document(self, collection_path: str, fields: Dict[str, Any]) -> str:
        """Create a document with a store-assigned id and return the id."""

    @abstractmethod
    async def set_document(self, collection_path: str, document_id: str, fields: Dict[str, Any]) -> None:
        """Create or overwrite the document ``document_id``."""

    @abstractmethod
    async def update_document(self, collection_path: str, document_id: str, fields: Dict[str, Any]) -> None:
        """Merge ``fields`` into an existing document."""

    @abstractmethod
    async def get_documents(self, collection_path: str) -> List[DocumentSnapshot]:
        """Read a collection once."""


def _order_key(value: Any) -> Optional[datetime]:
    try:
        stamp = _TIMESTAMP.validate_python(value)
    except ValidationError:
        return None
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp


@dataclass(frozen=True)
class _Query:
    collection: str
    order_field: Optional[str] = None
    contains: Optional[Tuple[str, Any]] = None

    def run(self, documents: List[DocumentSnapshot]) -> QuerySnapshot:
        results = documents
        if self.contains is not None:
            name, value = self.contains
            results = [
                doc for doc in results if isinstance(doc.data.get(name), list) and value in doc.data[name]
            ]
        if self.order_field is not None:
            keyed = [(_order_key(doc.data.get(self.order_field)), doc) for doc in results]
            # documents without a usable order value are not part of an ordered query
            keyed = [(key, doc) for key, doc in keyed if key is not None]
            keyed.sort(key=lambda item: item[0])
            results = [doc for _, doc in keyed]
        return QuerySnapshot(documents=list(results))


@dataclass
class _Listener:
    query: _Query
    callback: SnapshotListener
    registration: ListenerRegistration


class LocalDocumentStore(DocumentStore):
    """Document store persisted in SQLite that fans snapshots out in-process.

    Listener callbacks are queued onto the running event loop and never invoked
    from inside the writer's call; live queries must be opened from a coroutine
    or callback running on that loop.
    """

    def __init__(self) -> None:
        self._listeners: Dict[int, _Listener] = {}
        self._keys = itertools.count()
        self._pending_deliveries = 0

    # Live queries -----------------------------------------------------------------
    def query_ordered(
        self, collection_path: str, order_field: str, listener: SnapshotListener
    ) -> ListenerRegistration:
        return self._register(_Query(collection=collection_path, order_field=order_field), listener)

    def query_where_array_contains(
        self, collection_path: str, field_name: str, value: Any, listener: SnapshotListener
    ) -> ListenerRegistration:
        return self._register(_Query(collection=collection_path, contains=(field_name, value)), listener)

    def listener_count(self, collection_path: Optional[str] = None) -> int:
        return sum(
            1
            for listener in self._listeners.values()
            if collection_path is None or listener.query.collection == collection_path
        )

    async def flush(self) -> None:
        """Wait until every queued snapshot has been delivered."""
        while self._pending_deliveries:
            await asyncio.sleep(0)

    # Writes -----------------------------------------------------------------------
    async def add_document(self, collection_path: str, fields: Dict[str, Any]) -> str:
        document_id = generate_document_id()
        payload = self._dump(fields)
        try:
            with session_scope() as db:
                db.add(Document(collection=collection_path, id=document_id, data=payload))
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"Failed to add document to '{collection_path}'.") from exc
        LOG.debug("Added %s/%s", collection_path, document_id)
        self._notify(collection_path)
        return document_id

    async def set_document(self, collection_path: str, document_id: str, fields: Dict[str, Any]) -> None:
        payload = self._dump(fields)
        try:
            with session_scope() as db:
                document = db.get(Document, (collection_path, document_id))
                if document is None:
                    db.add(Document(collection=collection_path, id=document_id, data=payload))
                else:
                    document.data = payload
                    document.revision += 1
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"Failed to write {collection_path}/{document_id}.") from exc
        LOG.debug("Set %s/%s", collection_path, document_id)
        self._notify(collection_path)

    async def update_document(self, collection_path: str, document_id: str, fields: Dict[str, Any]) -> None:
        try:
            with session_scope() as db:
                document = db.get(Document, (collection_path, document_id))
                if document is None:
                    raise DocumentStoreError(f"No document {collection_path}/{document_id} to update.")
                merged = json.loads(document.data)
                merged.update(json.loads(self._dump(fields)))
                document.data = json.dumps(merged)
                document.revision += 1
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"Failed to update {collection_path}/{document_id}.") from exc
        self._notify(collection_path)

    async def get_documents(self, collection_path: str) -> List[DocumentSnapshot]:
        return self._load(collection_path)

    # Internals --------------------------------------------------------------------
    def _register(self, query: _Query, callback: SnapshotListener) -> ListenerRegistration:
        key = next(self._keys)
        registration = ListenerRegistration(lambda: self._listeners.pop(key, None))
        listener = _Listener(query=query, callback=callback, registration=registration)
        self._listeners[key] = listener
        self._schedule(listener)
        return registration

    def _notify(self, collection_path: str) -> None:
        for listener in list(self._listeners.values()):
            if listener.query.collection == collection_path:
                self._schedule(listener)

    def _schedule(self, listener: _Listener) -> None:
        snapshot: Optional[QuerySnapshot] = None
        error: Optional[Exception] = None
        try:
            snapshot = listener.query.run(self._load(listener.query.collection))
        except DocumentStoreError as exc:
            error = exc
        loop = asyncio.get_running_loop()
        self._pending_deliveries += 1
        loop.call_soon(self._deliver, listener, snapshot, error)

    def _deliver(
        self, listener: _Listener, snapshot: Optional[QuerySnapshot], error: Optional[Exception]
    ) -> None:
        self._pending_deliveries -= 1
        if not listener.registration.active:
            return
        try:
            listener.callback(snapshot, error)
        except Exception:
            LOG.exception("Snapshot listener for '%s' raised", listener.query.collection)

    def _load(self, collection_path: str) -> List[DocumentSnapshot]:
        try:
            with session_scope() as db:
                rows = (
                    db.query(Document)
                    .filter(Document.collection == collection_path)
                    .order_by(Document.created_at.asc(), Document.id.asc())
                    .all()
                )
                return [DocumentSnapshot(id=row.id, data=json.loads(row.data)) for row in rows]
        except SQLAlchemyError as exc:
            raise DocumentStoreError(f"Failed to read '{collection_path}'.") from exc

    @staticmethod
    def _dump(fields: Dict[str, Any]) -> str:
        try:
            return to_json(fields).decode("utf-8")
        except PydanticSerializationError as exc:
            raise DocumentStoreError("Document fields are not serialisable.") from exc
