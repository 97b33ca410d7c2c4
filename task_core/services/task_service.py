# =============================================================================
# task_core/services/task_service.py
# Mutation and Query API for Tasks
# =============================================================================
"""
TaskService - the API application code calls.

Every mutation writes the local store first (immediately visible to queries,
synced=False) and then initiates the matching push. Remote problems never
reach the caller: once the local write commits the operation has succeeded,
and a false ``synced`` flag is the only trace of a failed push.

Usage:
    service = build_task_service()
    service.session.sign_in("uid-123")
    service.pull_sync()
    task_id = service.create_task("Buy milk")
    service.toggle_complete(task_id)
    for task in service.list_tasks():
        print(task.title, task.synced)
"""

from __future__ import annotations
from concurrent.futures import Future
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd

from task_core.auth import AuthSession
from task_core.config import SyncSettings, load_settings
from task_core.errors import TaskNotFoundError, ValidationError
from task_core.models import Task, utcnow
from task_core.offline.connection_manager import ConnectionManager
from task_core.offline.record_store import RecordStore
from task_core.offline.remote_store import RemoteDocumentStore, create_remote_store
from task_core.offline.sync_engine import PullResult, SyncEngine
from task_core.services.base_service import BaseService


def _validate_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title is required", field="title")
    return title.strip()


def _validate_description(description: Any) -> Optional[str]:
    if description is not None and not isinstance(description, str):
        raise ValidationError(
            "Description must be text",
            field="description",
            value=type(description).__name__,
        )
    return description


def _next_timestamp(task: Task) -> datetime:
    """A fresh updated_at that is strictly later than the stored one."""
    return max(utcnow(), task.updated_at + timedelta(microseconds=1))


class TaskService(BaseService):
    """Create / update / toggle / delete and list tasks for the signed-in user."""

    def __init__(self, store: RecordStore, engine: SyncEngine, session: AuthSession):
        super().__init__()
        self.store = store
        self.engine = engine
        self.session = session
        self.last_push: Optional[Future] = None

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def create_task(self, title: str, description: Optional[str] = None) -> str:
        """
        Create a task for the signed-in user.

        Returns:
            The new task id

        Raises:
            ValidationError: Empty title (nothing is written)
            AuthError: Nobody signed in (nothing is written)
            LocalStoreError: Local transaction failed
        """
        title = _validate_title(title)
        description = _validate_description(description)
        user_id = self.session.require_user("create task")

        now = utcnow()
        task = Task(
            title=title,
            description=description,
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )
        with self.log_operation(f"Creating task {task.id}"):
            self.store.insert(task)

        self.last_push = self.engine.push_task(task.id)
        return task.id

    def update_task(self, task_id: str, title: str, description: Optional[str] = None) -> None:
        """Edit title and description, then push the full record."""
        title = _validate_title(title)
        description = _validate_description(description)
        task = self._require_task(task_id, "update task")

        with self.log_operation(f"Updating task {task_id}"):
            self.store.update_fields(
                task_id,
                title=title,
                description=description,
                updated_at=_next_timestamp(task),
                synced=False,
            )

        self.last_push = self.engine.push_task(task_id)

    def toggle_complete(self, task_id: str) -> bool:
        """
        Flip completion, then push only {isCompleted, updatedAt}.

        Returns:
            The new completion state
        """
        task = self._require_task(task_id, "toggle task")
        completed = not task.is_completed

        self.store.update_fields(
            task_id,
            is_completed=completed,
            updated_at=_next_timestamp(task),
            synced=False,
        )
        self.logger.info(f"Task {task_id} marked {'done' if completed else 'not done'}")

        self.last_push = self.engine.push_completion(task_id)
        return completed

    def delete_task(self, task_id: str) -> None:
        """Delete locally right away; the remote delete is best-effort."""
        self._require_task(task_id, "delete task")

        self.store.delete(task_id)
        self.logger.info(f"Task {task_id} deleted")

        self.last_push = self.engine.push_delete(task_id)

    def _require_task(self, task_id: str, operation: str) -> Task:
        user_id = self.session.require_user(operation)
        task = self.store.get(task_id, user_id=user_id)
        if task is None:
            raise TaskNotFoundError(task_id, details={"operation": operation})
        return task

    # =========================================================================
    # QUERIES
    # =========================================================================

    def list_tasks(self) -> List[Task]:
        """The signed-in user's tasks, newest first ([] when signed out)."""
        user_id = self.session.user_id
        if user_id is None:
            return []
        return self.store.list_for_user(user_id)

    def get_task(self, task_id: str) -> Optional[Task]:
        user_id = self.session.user_id
        if user_id is None:
            return None
        return self.store.get(task_id, user_id=user_id)

    def tasks_dataframe(self) -> pd.DataFrame:
        """The signed-in user's tasks as a DataFrame (empty when signed out)."""
        user_id = self.session.user_id
        if user_id is None:
            return pd.DataFrame(columns=list(Task.__dataclass_fields__))
        return self.store.to_dataframe(user_id)

    @property
    def pending_sync_count(self) -> int:
        user_id = self.session.user_id
        return self.engine.pending_count(user_id) if user_id else 0

    # =========================================================================
    # SYNC
    # =========================================================================

    def pull_sync(self) -> PullResult:
        """Merge remote state into the local store (no-op offline/signed out)."""
        return self.engine.pull_sync()

    def get_status(self) -> Dict[str, Any]:
        status = {"user_id": self.session.user_id}
        status.update(self.engine.get_status_display())
        return status

    def close(self) -> None:
        """Drain pushes and close the local store."""
        self.engine.shutdown(wait_for_pushes=True)
        self.store.close()


def build_task_service(
    settings: Optional[SyncSettings] = None,
    session: Optional[AuthSession] = None,
    remote: Optional[RemoteDocumentStore] = None,
    connectivity=None,
) -> TaskService:
    """
    Wire store, remote, connectivity oracle, engine and service explicitly.

    Args:
        settings: Resolved settings (loaded from env/secrets when None)
        session: Auth session to use (a fresh signed-out one when None)
        remote: Remote store override (built from settings when None)
        connectivity: Connectivity oracle override
    """
    settings = settings or load_settings()
    session = session or AuthSession()

    store = RecordStore(settings.db_path)
    store.initialize()

    if remote is None:
        remote = create_remote_store(settings)
    if connectivity is None:
        connectivity = ConnectionManager(
            remote_url=settings.supabase_url,
            timeout=settings.connection_timeout,
        )

    engine = SyncEngine(
        store,
        remote,
        connectivity,
        session,
        max_workers=settings.push_workers,
    )
    return TaskService(store, engine, session)
