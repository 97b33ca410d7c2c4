# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import threading
from typing import Any, Dict, List, Optional, Set, Tuple
from unittest.mock import MagicMock

import pytest

from task_core.auth import AuthSession
from task_core.errors import RemoteSyncError
from task_core.offline.record_store import RecordStore
from task_core.offline.remote_store import RemoteDocumentStore
from task_core.offline.sync_engine import SyncEngine
from task_core.services.task_service import TaskService


USER_ID = "user-1"
OTHER_USER_ID = "user-2"


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeDocumentStore(RemoteDocumentStore):
    """
    In-memory document collection shared by simulated devices.

    failing: operation names ("get_by_owner", "set", "update", "delete")
        that raise RemoteSyncError
    gates: operation name -> Event; the call blocks until the event is set
    """

    def __init__(self):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.failing: Set[str] = set()
        self.gates: Dict[str, threading.Event] = {}
        self.started: Dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def gate(self, operation: str) -> threading.Event:
        """Hold calls to ``operation`` until the returned event is set."""
        self.gates[operation] = threading.Event()
        self.started[operation] = threading.Event()
        return self.gates[operation]

    def _enter(self, operation: str, doc_id: str = "") -> None:
        with self._lock:
            self.calls.append((operation, doc_id))
        if operation in self.started:
            self.started[operation].set()
        if operation in self.gates:
            assert self.gates[operation].wait(timeout=5), f"{operation} gate never opened"
        if operation in self.failing:
            raise RemoteSyncError(f"simulated {operation} failure", operation=operation, doc_id=doc_id)

    def get_by_owner(self, user_id: str) -> List[Dict[str, Any]]:
        self._enter("get_by_owner", user_id)
        with self._lock:
            return [
                {"id": doc_id, **fields}
                for doc_id, fields in self.documents.items()
                if fields.get("userId") == user_id
            ]

    def set(self, doc_id: str, fields: Dict[str, Any], merge: bool = True) -> None:
        self._enter("set", doc_id)
        with self._lock:
            if merge and doc_id in self.documents:
                self.documents[doc_id].update(fields)
            else:
                self.documents[doc_id] = dict(fields)

    def update(self, doc_id: str, fields: Dict[str, Any]) -> None:
        self._enter("update", doc_id)
        with self._lock:
            if doc_id not in self.documents:
                raise RemoteSyncError("Document not found", operation="update", doc_id=doc_id)
            self.documents[doc_id].update(fields)

    def delete(self, doc_id: str) -> None:
        self._enter("delete", doc_id)
        with self._lock:
            self.documents.pop(doc_id, None)

    def ops(self, operation: str) -> List[str]:
        return [doc_id for op, doc_id in self.calls if op == operation]


class StubConnectivity:
    """Connectivity oracle with a switchable answer."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.checks = 0

    def is_connected(self) -> bool:
        self.checks += 1
        return self.connected


def build_device(db_path, remote, user_id: Optional[str] = USER_ID, connected: bool = True):
    """Assemble store + engine + service for one simulated device."""
    store = RecordStore(db_path)
    store.initialize()
    session = AuthSession(user_id)
    connectivity = StubConnectivity(connected)
    engine = SyncEngine(store, remote, connectivity, session, max_workers=4)
    return TaskService(store, engine, session), connectivity


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def remote():
    """Shared in-memory remote collection"""
    return FakeDocumentStore()


@pytest.fixture
def connectivity():
    return StubConnectivity(True)


@pytest.fixture
def session():
    """Session signed in as USER_ID"""
    return AuthSession(USER_ID)


@pytest.fixture
def store(tmp_path):
    """Initialized record store in a temp directory"""
    record_store = RecordStore(tmp_path / "tasks.db")
    record_store.initialize()
    yield record_store
    record_store.close()


@pytest.fixture
def engine(store, remote, connectivity, session):
    sync_engine = SyncEngine(store, remote, connectivity, session, max_workers=4)
    yield sync_engine
    sync_engine.shutdown(wait_for_pushes=False)


@pytest.fixture
def service(store, engine, session):
    return TaskService(store, engine, session)


@pytest.fixture
def make_device(tmp_path, remote):
    """Factory for extra simulated devices sharing the remote"""
    devices = []

    def _make(name: str, user_id: Optional[str] = USER_ID, connected: bool = True):
        device, oracle = build_device(tmp_path / f"{name}.db", remote, user_id, connected)
        devices.append(device)
        return device, oracle

    yield _make
    for device in devices:
        device.close()


@pytest.fixture
def second_device(make_device):
    """A second device signed in as the same user"""
    device, _ = make_device("device_b")
    return device


@pytest.fixture
def mock_supabase():
    """Mock Supabase client"""
    mock_client = MagicMock()
    mock_client.table.return_value.select.return_value.execute.return_value.data = []
    mock_client.table.return_value.upsert.return_value.execute.return_value = MagicMock()
    return mock_client


@pytest.fixture
def mock_streamlit(monkeypatch):
    """Replace the streamlit handle used by the error handlers"""
    mock_st = MagicMock()
    monkeypatch.setattr("task_core.errors.handlers.st", mock_st)
    return mock_st
