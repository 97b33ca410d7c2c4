# =============================================================================
# task_core/offline/__init__.py
# Local-first storage and synchronization
# =============================================================================
"""
Local-first sync layer.

    ┌──────────────────────────────────────────┐
    │               TaskService                │
    │   (create / update / toggle / delete)    │
    └──────────────────────────────────────────┘
           │ local write            │ push (background)
           ▼                        ▼
    ┌──────────────┐  pull   ┌────────────────┐      ┌──────────────────────┐
    │ RecordStore  │◄────────│   SyncEngine   │─────►│ RemoteDocumentStore  │
    │  (SQLite)    │ merge   │                │      │     (Supabase)       │
    └──────────────┘         └────────────────┘      └──────────────────────┘
                                    │
                             ┌─────────────────┐
                             │ConnectionManager│
                             └─────────────────┘

Usage:
------
from task_core.offline import RecordStore, SyncEngine, ConnectionManager

store = RecordStore(path)
store.initialize()
engine = SyncEngine(store, remote, ConnectionManager(remote_url), session)
engine.pull_sync()
"""

from task_core.offline.connection_manager import (
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
)

from task_core.offline.record_store import (
    RecordStore,
    StoreChange,
    SCHEMA_VERSION,
)

from task_core.offline.remote_store import (
    RemoteDocumentStore,
    SupabaseDocumentStore,
    create_remote_store,
)

from task_core.offline.sync_engine import (
    SyncEngine,
    SyncState,
    PullResult,
    PullStatus,
)

__all__ = [
    # Connectivity
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    # Local store
    "RecordStore",
    "StoreChange",
    "SCHEMA_VERSION",
    # Remote store
    "RemoteDocumentStore",
    "SupabaseDocumentStore",
    "create_remote_store",
    # Sync engine
    "SyncEngine",
    "SyncState",
    "PullResult",
    "PullStatus",
]
