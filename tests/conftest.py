import asyncio
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest

from convo_sync import constants
from convo_sync.clients import database
from convo_sync.clients.document_store import DocumentStoreError, LocalDocumentStore
from convo_sync.clients.session import StaticSession
from convo_sync.clients.uploader import MediaUploader
from convo_sync.models.message import MediaRef
from convo_sync.models.user import User


class FlakyDocumentStore(LocalDocumentStore):
    """Local store whose writes can be made to fail or to hang before acknowledging."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_add = False
        self.fail_set = False
        self.fail_update = False
        self.add_calls: List[Tuple[str, Dict[str, Any]]] = []
        self.set_calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self.update_calls: List[Tuple[str, str, Dict[str, Any]]] = []
        # when set, set_document stores the data but waits here before returning
        self.set_gate: Optional[asyncio.Event] = None

    async def add_document(self, collection_path: str, fields: Dict[str, Any]) -> str:
        self.add_calls.append((collection_path, fields))
        if self.fail_add:
            raise DocumentStoreError("add refused")
        return await super().add_document(collection_path, fields)

    async def set_document(self, collection_path: str, document_id: str, fields: Dict[str, Any]) -> None:
        self.set_calls.append((collection_path, document_id, fields))
        if self.fail_set:
            raise DocumentStoreError("write refused")
        await super().set_document(collection_path, document_id, fields)
        if self.set_gate is not None:
            await self.set_gate.wait()

    async def update_document(self, collection_path: str, document_id: str, fields: Dict[str, Any]) -> None:
        self.update_calls.append((collection_path, document_id, fields))
        if self.fail_update:
            raise DocumentStoreError("update refused")
        await super().update_document(collection_path, document_id, fields)


class FakeUploader(MediaUploader):
    """Uploader stand-in that fails for chosen file names."""

    def __init__(self) -> None:
        self.failing: Set[str] = set()
        self.uploaded: List[MediaRef] = []

    async def upload(self, media: MediaRef) -> Optional[str]:
        self.uploaded.append(media)
        if media.path.name in self.failing:
            return None
        return f"https://cdn.example.com/{media.path.name}"


@pytest.fixture(autouse=True)
def temp_runtime_dirs(tmp_path, monkeypatch):
    """Redirect runtime directories and database into a temp location."""
    base = tmp_path / "runtime"
    home = base / "home"
    mapping = {
        "HOME_DIR": home,
        "LOG_DIR": home / "logs",
        "DB_DIR": home / "db",
        "DB_FILE": home / "db" / "convo-sync.db",
        "MEDIA_DIR": home / "media",
    }

    for name, path in mapping.items():
        monkeypatch.setattr(constants, name, path)

    database.init_db()
    yield


@pytest.fixture
def alice() -> User:
    return User(id="alice", name="Alice")


@pytest.fixture
def bob() -> User:
    return User(id="bob", name="Bob")


@pytest.fixture
def carol() -> User:
    return User(id="carol", name="Carol")


@pytest.fixture
def store() -> FlakyDocumentStore:
    return FlakyDocumentStore()


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()


@pytest.fixture
def alice_session(alice) -> StaticSession:
    return StaticSession(alice)


@pytest.fixture
def bob_session(bob) -> StaticSession:
    return StaticSession(bob)
