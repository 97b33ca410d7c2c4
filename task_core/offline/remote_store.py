# =============================================================================
# task_core/offline/remote_store.py
# Remote Document Store contract and its Supabase implementation
# =============================================================================
"""
RemoteDocumentStore - the keyed document collection the sync engine talks to.

The collection is flat and keyed by task id. Each document carries exactly
{title, description, isCompleted, createdAt, updatedAt, userId}.

Contract:
- get_by_owner(user_id)          -> list of documents ("id" + fields)
- set(doc_id, fields, merge=True) merge leaves unspecified fields untouched
- update(doc_id, fields)          partial update, fails if the doc is missing
- delete(doc_id)

Every operation may fail and raises RemoteSyncError when it does.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import logging

from supabase import Client, create_client

from task_core.config import SyncSettings
from task_core.errors import ConfigurationError, RemoteSyncError
from task_core.models import DOCUMENT_FIELDS

logger = logging.getLogger(__name__)


class RemoteDocumentStore(ABC):
    """Abstract keyed document collection."""

    @abstractmethod
    def get_by_owner(self, user_id: str) -> List[Dict[str, Any]]:
        """Return every document whose userId equals ``user_id``."""

    @abstractmethod
    def set(self, doc_id: str, fields: Dict[str, Any], merge: bool = True) -> None:
        """Create or write a document; with merge, untouched fields are kept."""

    @abstractmethod
    def update(self, doc_id: str, fields: Dict[str, Any]) -> None:
        """Partially update an existing document."""

    @abstractmethod
    def delete(self, doc_id: str) -> None:
        """Delete a document."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


class SupabaseDocumentStore(RemoteDocumentStore):
    """
    Remote document store backed by a Supabase (PostgREST) table.

    The table needs a text primary key ``id`` and one column per document
    field; see scripts/setup_tasks_table.py. A merge-set is a Postgres upsert
    on ``id``, which only writes the columns present in the payload.

    Usage:
        remote = SupabaseDocumentStore.from_settings(settings)
        docs = remote.get_by_owner("uid-123")
    """

    PAGE_SIZE = 1000  # PostgREST default row limit

    def __init__(self, client: Client, table_name: str = "tasks"):
        """
        Initialize for a specific table.

        Args:
            client: Supabase client
            table_name: Name of the Supabase table holding task documents
        """
        self.client = client
        self.table_name = table_name

    @classmethod
    def from_settings(cls, settings: SyncSettings) -> SupabaseDocumentStore:
        """Create a client from settings."""
        if not settings.remote_configured:
            raise ConfigurationError(
                "Supabase credentials not configured",
                config_key="SUPABASE_URL",
            )
        try:
            client = create_client(settings.supabase_url, settings.supabase_key)
        except Exception as e:
            raise ConfigurationError(
                f"Failed to initialize Supabase client: {e}",
                config_key="SUPABASE_URL",
            ) from e
        return cls(client, settings.tasks_table)

    def _table(self):
        return self.client.table(self.table_name)

    def get_by_owner(self, user_id: str) -> List[Dict[str, Any]]:
        """
        Fetch ALL documents of one owner (handles the 1000 row limit).

        Returns:
            List of dicts with "id" and the document fields
        """
        documents: List[Dict[str, Any]] = []
        offset = 0

        try:
            while True:
                response = (
                    self._table()
                    .select("*")
                    .eq("userId", user_id)
                    .order("id")
                    .range(offset, offset + self.PAGE_SIZE - 1)
                    .execute()
                )
                batch = response.data or []
                documents.extend(batch)

                # Fewer than a full page means we've reached the end
                if len(batch) < self.PAGE_SIZE:
                    break
                offset += self.PAGE_SIZE
        except Exception as e:
            raise RemoteSyncError(
                f"Error fetching documents from {self.table_name}: {e}",
                operation="get_by_owner",
                details={"user_id": user_id},
            ) from e

        logger.debug(f"Fetched {len(documents)} documents from {self.table_name}")
        return documents

    def set(self, doc_id: str, fields: Dict[str, Any], merge: bool = True) -> None:
        payload = dict(fields)
        if not merge:
            # Full overwrite: every field not supplied is cleared
            for name in DOCUMENT_FIELDS:
                payload.setdefault(name, None)
        payload["id"] = doc_id

        try:
            self._table().upsert(payload, on_conflict="id").execute()
        except Exception as e:
            raise RemoteSyncError(
                f"Error writing document: {e}", operation="set", doc_id=doc_id
            ) from e

    def update(self, doc_id: str, fields: Dict[str, Any]) -> None:
        try:
            response = self._table().update(dict(fields)).eq("id", doc_id).execute()
        except Exception as e:
            raise RemoteSyncError(
                f"Error updating document: {e}", operation="update", doc_id=doc_id
            ) from e

        if not response.data:
            raise RemoteSyncError("Document not found", operation="update", doc_id=doc_id)

    def delete(self, doc_id: str) -> None:
        try:
            self._table().delete().eq("id", doc_id).execute()
        except Exception as e:
            raise RemoteSyncError(
                f"Error deleting document: {e}", operation="delete", doc_id=doc_id
            ) from e

    def close(self) -> None:
        """Close the underlying HTTP session, if the client exposes one."""
        postgrest = getattr(self.client, "postgrest", None)
        session = getattr(postgrest, "session", None)
        if session is not None and hasattr(session, "close"):
            session.close()


def create_remote_store(settings: SyncSettings) -> Optional[RemoteDocumentStore]:
    """
    Build the remote store described by settings.

    Returns:
        A SupabaseDocumentStore, or None when no remote is configured
        (local-only mode)
    """
    if not settings.remote_configured:
        logger.info("No remote configured; running local-only")
        return None
    return SupabaseDocumentStore.from_settings(settings)
