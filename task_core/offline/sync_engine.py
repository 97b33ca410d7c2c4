# =============================================================================
# task_core/offline/sync_engine.py
# Pull / Push Synchronization Engine
# =============================================================================
"""
SyncEngine - keeps the local record store and the remote document store
consistent for the signed-in user.

Pull (remote -> local), triggered explicitly (startup, manual refresh):
    every document owned by the user is upserted locally with synced=True.
    Remote wins for every field it carries; local records missing remotely are
    left alone (pull is additive, never a full replace).

Push (local -> remote), one background unit of work per mutation:
    create/edit  -> set(id, full payload, merge=True)
    toggle       -> update(id, {isCompleted, updatedAt})
    delete       -> delete(id), fire-and-forget
    A successful create/edit/toggle push re-enters a local transaction to flip
    synced=True, but only if the record still exists and is unchanged since
    the push was issued. Failures are logged and never retried.

Known limitation: pull overwrites a local edit whose push failed, and a
remote delete that fails leaves an orphaned document.
"""

from __future__ import annotations
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Tuple
import logging
import time

from task_core.auth import AuthSession
from task_core.errors import LocalStoreError, log_sync_failure
from task_core.logging import LogContext
from task_core.models import Task, to_remote_key
from task_core.offline.record_store import RecordStore
from task_core.offline.remote_store import RemoteDocumentStore

logger = logging.getLogger(__name__)


class PullStatus(Enum):
    """Outcome of a pull."""
    COMPLETED = "completed"
    SKIPPED_SIGNED_OUT = "skipped_signed_out"
    SKIPPED_OFFLINE = "skipped_offline"
    SKIPPED_NO_REMOTE = "skipped_no_remote"
    FAILED = "failed"


@dataclass
class PullResult:
    """Summary of one pull."""
    status: PullStatus
    fetched: int = 0
    changed: int = 0
    skipped: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == PullStatus.COMPLETED


@dataclass
class SyncState:
    """Current sync state."""
    is_pulling: bool = False
    last_pull: Optional[datetime] = None
    last_pull_success: Optional[datetime] = None
    pulls_failed: int = 0
    pushes_in_flight: int = 0
    pushes_succeeded: int = 0
    pushes_failed: int = 0
    pushes_skipped: int = 0


def _completed(result: bool) -> Future:
    future: Future = Future()
    future.set_result(result)
    return future


class SyncEngine:
    """
    Orchestrates pull and push between a RecordStore and a remote store.

    Usage:
        engine = SyncEngine(store, remote, connection_manager, session)
        engine.pull_sync()
        future = engine.push_task(task_id)
        future.result()  # True if the remote write succeeded
    """

    def __init__(
        self,
        store: RecordStore,
        remote: Optional[RemoteDocumentStore],
        connectivity,
        session: AuthSession,
        max_workers: int = 4,
        background: bool = True,
    ):
        """
        Initialize sync engine.

        Args:
            store: Local record store
            remote: Remote document store, or None for local-only mode
            connectivity: Object with an is_connected() -> bool method
            session: Supplies the signed-in user for pulls
            max_workers: Concurrent background pushes
            background: Run pushes on worker threads (False runs them inline)
        """
        self.store = store
        self.remote = remote
        self.connectivity = connectivity
        self.session = session
        self.background = background

        self._state = SyncState()
        self._state_lock = threading.Lock()
        self._pull_lock = threading.Lock()
        self._callbacks: List[Callable[[SyncState], None]] = []

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="TaskPush")
        self._in_flight: Set[Future] = set()
        self._in_flight_lock = threading.Lock()
        self._shutdown = False

    @property
    def state(self) -> SyncState:
        """Get current sync state."""
        return self._state

    @property
    def is_pulling(self) -> bool:
        return self._state.is_pulling

    def pending_count(self, user_id: Optional[str] = None) -> int:
        """Number of local records that still owe a push."""
        return self.store.count_unsynced(user_id)

    # =========================================================================
    # PULL
    # =========================================================================

    def pull_sync(self) -> PullResult:
        """
        Merge the signed-in user's remote documents into the local store.

        Safe to call repeatedly; a no-op when signed out or offline. Failures
        are logged and leave local state unchanged.
        """
        user_id = self.session.user_id
        if user_id is None:
            logger.debug("Pull skipped: no signed-in user")
            return PullResult(PullStatus.SKIPPED_SIGNED_OUT)

        if self.remote is None:
            logger.debug("Pull skipped: no remote configured")
            return PullResult(PullStatus.SKIPPED_NO_REMOTE)

        if not self.connectivity.is_connected():
            logger.debug("Pull skipped: offline")
            return PullResult(PullStatus.SKIPPED_OFFLINE)

        with self._pull_lock:
            self._set_state(is_pulling=True, last_pull=datetime.now())
            try:
                with LogContext(logger, f"Pull for user {user_id}", level=logging.DEBUG):
                    documents = self.remote.get_by_owner(user_id)
                    tasks, skipped = self._merge_candidates(user_id, documents)
                    changed = self.store.upsert_many(tasks)
            except Exception as e:
                log_sync_failure(e, "pull")
                with self._state_lock:
                    self._state.pulls_failed += 1
                return PullResult(PullStatus.FAILED, error=str(e))
            finally:
                self._set_state(is_pulling=False)

        self._set_state(last_pull_success=datetime.now())
        logger.info(
            f"Pulled {len(documents)} documents for {user_id}: "
            f"{changed} changed, {skipped} skipped"
        )
        return PullResult(
            PullStatus.COMPLETED,
            fetched=len(documents),
            changed=changed,
            skipped=skipped,
        )

    def _merge_candidates(self, user_id: str, documents: List[Dict[str, Any]]) -> Tuple[List[Task], int]:
        """Turn remote documents into synced Tasks, dropping unusable ones."""
        tasks: List[Task] = []
        skipped = 0

        for doc in documents:
            doc_id = doc.get("id")
            if not doc_id:
                logger.warning("Skipping remote document without an id")
                skipped += 1
                continue

            if doc.get("userId") != user_id:
                logger.warning(f"Skipping document {doc_id}: owned by another user")
                skipped += 1
                continue

            existing = self.store.get(doc_id)
            try:
                task = Task.from_document(
                    doc_id,
                    doc,
                    default_created_at=existing.created_at if existing else None,
                )
            except ValueError as e:
                logger.warning(f"Skipping malformed document {doc_id}: {e}")
                skipped += 1
                continue

            tasks.append(task)

        return tasks, skipped

    # =========================================================================
    # PUSH
    # =========================================================================

    def push_task(self, task_id: str) -> Future:
        """
        Push the create/edit path: full merge-set of the current record.

        Returns:
            Future resolving to True iff the remote write succeeded
        """
        task = self.store.get(task_id)
        if task is None:
            logger.debug(f"Push skipped: task {task_id} no longer exists")
            return _completed(False)

        key = to_remote_key(task.id)
        payload = task.to_document()
        return self._issue(
            "push",
            task.id,
            lambda: self.remote.set(key, payload, merge=True),
            expected_updated_at=task.updated_at,
        )

    def push_completion(self, task_id: str) -> Future:
        """Push the toggle path: partial update of isCompleted/updatedAt."""
        task = self.store.get(task_id)
        if task is None:
            logger.debug(f"Completion push skipped: task {task_id} no longer exists")
            return _completed(False)

        key = to_remote_key(task.id)
        payload = task.completion_patch()
        return self._issue(
            "completion push",
            task.id,
            lambda: self.remote.update(key, payload),
            expected_updated_at=task.updated_at,
        )

    def push_delete(self, task_id: str) -> Future:
        """Issue a best-effort remote delete; never retried."""
        key = to_remote_key(task_id)
        return self._issue("remote delete", task_id, lambda: self.remote.delete(key))

    def _issue(
        self,
        operation: str,
        task_id: str,
        remote_call: Callable[[], None],
        expected_updated_at: Optional[datetime] = None,
    ) -> Future:
        """Start one unit of push work, or resolve False if it can't be attempted."""
        if self.remote is None:
            return self._skip(operation, task_id, "no remote configured")
        if self._shutdown:
            return self._skip(operation, task_id, "engine shut down")

        if not self.background:
            if not self.connectivity.is_connected():
                return self._skip(operation, task_id, "offline")
            return _completed(self._run_push(operation, task_id, remote_call, expected_updated_at))

        try:
            with self._in_flight_lock:
                future = self._executor.submit(
                    self._run_background_push, operation, task_id, remote_call, expected_updated_at
                )
                self._in_flight.add(future)
                in_flight = len(self._in_flight)
        except RuntimeError:
            # Pool shut down after the check above
            return self._skip(operation, task_id, "engine shut down")
        self._set_state(pushes_in_flight=in_flight)
        future.add_done_callback(self._discard)
        return future

    def _skip(self, operation: str, task_id: str, reason: str) -> Future:
        self._count_skip(operation, task_id, reason)
        return _completed(False)

    def _count_skip(self, operation: str, task_id: str, reason: str) -> None:
        logger.debug(f"{operation} for task {task_id} not attempted: {reason}")
        with self._state_lock:
            self._state.pushes_skipped += 1

    def _run_background_push(
        self,
        operation: str,
        task_id: str,
        remote_call: Callable[[], None],
        expected_updated_at: Optional[datetime],
    ) -> bool:
        """Worker entry point: the connectivity probe runs off the caller's thread."""
        if not self.connectivity.is_connected():
            self._count_skip(operation, task_id, "offline")
            return False
        return self._run_push(operation, task_id, remote_call, expected_updated_at)

    def _run_push(
        self,
        operation: str,
        task_id: str,
        remote_call: Callable[[], None],
        expected_updated_at: Optional[datetime],
    ) -> bool:
        """Worker body: remote call, then the guarded synced acknowledgment."""
        try:
            remote_call()
        except Exception as e:
            log_sync_failure(e, operation, task_id)
            self._count_push(success=False)
            return False

        if expected_updated_at is not None:
            try:
                acknowledged = self.store.mark_synced(task_id, expected_updated_at)
            except LocalStoreError as e:
                logger.error(f"Could not record {operation} acknowledgment for {task_id}: {e}")
                acknowledged = False
            if not acknowledged:
                logger.debug(f"Task {task_id} changed or removed during {operation}; flag untouched")

        logger.debug(f"{operation} succeeded for task {task_id}")
        self._count_push(success=True)
        return True

    def _discard(self, future: Future) -> None:
        with self._in_flight_lock:
            self._in_flight.discard(future)
            in_flight = len(self._in_flight)
        self._set_state(pushes_in_flight=in_flight)

    def _count_push(self, success: bool) -> None:
        with self._state_lock:
            if success:
                self._state.pushes_succeeded += 1
            else:
                self._state.pushes_failed += 1
        self._notify_callbacks()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no push is in flight.

        Returns:
            True if idle, False if the timeout expired first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._in_flight_lock:
                pending = set(self._in_flight)
            if not pending:
                return True

            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            _, not_done = wait(pending, timeout=remaining)
            if not_done and deadline is not None and time.monotonic() >= deadline:
                return False

    def shutdown(self, wait_for_pushes: bool = True) -> None:
        """Stop accepting pushes and release the worker pool."""
        self._shutdown = True
        self._executor.shutdown(wait=wait_for_pushes)
        logger.info("Sync engine stopped")

    # =========================================================================
    # STATE & CALLBACKS
    # =========================================================================

    def _set_state(self, **changes: Any) -> None:
        with self._state_lock:
            for key, value in changes.items():
                setattr(self._state, key, value)
        self._notify_callbacks()

    def register_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Register a callback for sync state changes."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        """Notify all registered callbacks."""
        for callback in list(self._callbacks):
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in sync callback: {e}")

    def get_status_display(self) -> Dict[str, Any]:
        """Get sync status for UI display."""
        user_id = self.session.user_id
        return {
            "is_pulling": self._state.is_pulling,
            "last_pull": self._state.last_pull.isoformat() if self._state.last_pull else None,
            "last_success": (
                self._state.last_pull_success.isoformat() if self._state.last_pull_success else None
            ),
            "pending_count": self.pending_count(user_id) if user_id else 0,
            "pushes_in_flight": self._state.pushes_in_flight,
            "pushes_succeeded": self._state.pushes_succeeded,
            "pushes_failed": self._state.pushes_failed,
            "pushes_skipped": self._state.pushes_skipped,
        }
