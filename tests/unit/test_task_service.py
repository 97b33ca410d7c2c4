# =============================================================================
# tests/unit/test_task_service.py
# Unit Tests for the TaskService mutation / query API
# =============================================================================

from unittest.mock import MagicMock

import pytest

from task_core.auth import AuthSession
from task_core.config import SyncSettings
from task_core.errors import AuthError, TaskNotFoundError, ValidationError
from task_core.models import Task
from task_core.services import build_task_service


class TestCreateTask:
    """Test task creation"""

    def test_create_is_visible_immediately_and_pushed(self, service, remote):
        task_id = service.create_task("Buy milk", "2 litres")

        task = service.get_task(task_id)
        assert task.title == "Buy milk"
        assert task.description == "2 litres"
        assert task.is_completed is False

        assert service.last_push.result(timeout=5) is True
        assert service.get_task(task_id).synced is True
        assert remote.documents[task_id]["title"] == "Buy milk"

    def test_title_is_trimmed(self, service):
        task_id = service.create_task("  padded  ")
        assert service.get_task(task_id).title == "padded"

    @pytest.mark.parametrize("title", ["", "   ", None, 42])
    def test_invalid_title_writes_nothing(self, service, title):
        with pytest.raises(ValidationError):
            service.create_task(title)
        assert service.list_tasks() == []

    def test_non_text_description_rejected(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.create_task("t", description=5)
        assert exc_info.value.details["field"] == "description"

    def test_signed_out_create_raises(self, service, session):
        session.sign_out()
        with pytest.raises(AuthError):
            service.create_task("t")

    def test_create_offline_stays_unsynced(self, service, connectivity, remote):
        connectivity.connected = False
        task_id = service.create_task("offline")

        assert service.last_push.result(timeout=5) is False
        assert service.get_task(task_id).synced is False
        assert remote.documents == {}

    def test_remote_failure_never_reaches_caller(self, service, remote):
        remote.failing.add("set")
        task_id = service.create_task("t")

        assert service.last_push.result(timeout=5) is False
        assert service.get_task(task_id).synced is False


class TestUpdateAndToggle:
    """Test edits and completion toggles"""

    def test_update_bumps_timestamp_and_resyncs(self, service, remote):
        task_id = service.create_task("old")
        service.last_push.result(timeout=5)
        before = service.get_task(task_id)

        service.update_task(task_id, "new", "details")

        after = service.get_task(task_id)
        assert after.title == "new"
        assert after.updated_at > before.updated_at
        assert service.last_push.result(timeout=5) is True
        assert remote.documents[task_id]["title"] == "new"
        assert service.get_task(task_id).synced is True

    def test_update_invalid_title_leaves_record(self, service):
        task_id = service.create_task("keep")
        with pytest.raises(ValidationError):
            service.update_task(task_id, " ")
        assert service.get_task(task_id).title == "keep"

    def test_update_unknown_task(self, service):
        with pytest.raises(TaskNotFoundError):
            service.update_task("missing", "t")

    def test_toggle_flips_and_pushes_patch(self, service, remote):
        task_id = service.create_task("t")
        service.last_push.result(timeout=5)

        assert service.toggle_complete(task_id) is True
        assert service.last_push.result(timeout=5) is True
        assert remote.documents[task_id]["isCompleted"] is True
        assert remote.ops("update") == [task_id]

        assert service.toggle_complete(task_id) is False
        service.last_push.result(timeout=5)
        assert remote.documents[task_id]["isCompleted"] is False

    def test_toggle_marks_unsynced_before_push_resolves(self, service, remote):
        task_id = service.create_task("t")
        service.last_push.result(timeout=5)
        gate = remote.gate("update")

        service.toggle_complete(task_id)
        assert service.get_task(task_id).synced is False

        gate.set()
        assert service.last_push.result(timeout=5) is True
        assert service.get_task(task_id).synced is True

    def test_cannot_touch_another_users_task(self, service, store):
        foreign = Task(title="theirs", user_id="user-2")
        store.insert(foreign)

        with pytest.raises(TaskNotFoundError):
            service.toggle_complete(foreign.id)
        with pytest.raises(TaskNotFoundError):
            service.delete_task(foreign.id)
        assert store.get(foreign.id) is not None


class TestDeleteTask:
    """Test deletion"""

    def test_delete_removes_locally_and_remotely(self, service, remote):
        task_id = service.create_task("t")
        service.last_push.result(timeout=5)

        service.delete_task(task_id)

        assert service.get_task(task_id) is None
        assert service.last_push.result(timeout=5) is True
        assert task_id not in remote.documents

    def test_delete_succeeds_when_remote_fails(self, service, remote):
        task_id = service.create_task("t")
        service.last_push.result(timeout=5)
        remote.failing.add("delete")

        service.delete_task(task_id)

        assert service.get_task(task_id) is None
        assert service.last_push.result(timeout=5) is False
        assert task_id in remote.documents


class TestQueries:
    """Test the read side"""

    def test_list_newest_first(self, service):
        for title in ("first", "second", "third"):
            service.create_task(title)

        tasks = service.list_tasks()
        assert {t.title for t in tasks} == {"first", "second", "third"}
        created = [t.created_at for t in tasks]
        assert created == sorted(created, reverse=True)

    def test_signed_out_queries_are_empty(self, service, session):
        service.create_task("t")
        session.sign_out()

        assert service.list_tasks() == []
        assert service.tasks_dataframe().empty
        assert service.pending_sync_count == 0

    def test_pending_sync_count(self, service, connectivity):
        connectivity.connected = False
        service.create_task("a")
        service.create_task("b")
        assert service.pending_sync_count == 2

    def test_dataframe(self, service):
        service.create_task("a")
        df = service.tasks_dataframe()
        assert list(df["title"]) == ["a"]

    def test_status_includes_user(self, service):
        status = service.get_status()
        assert status["user_id"] == "user-1"
        assert "pushes_failed" in status


class TestBuildTaskService:
    """Test explicit wiring"""

    def test_local_only_wiring(self, tmp_path):
        settings = SyncSettings(db_path=tmp_path / "local.db")
        service = build_task_service(settings, session=AuthSession("u1"))
        try:
            assert service.engine.remote is None
            task_id = service.create_task("offline first")
            assert service.last_push.result(timeout=5) is False
            assert service.get_task(task_id).synced is False
        finally:
            service.close()

    def test_overrides_are_used(self, tmp_path, remote):
        oracle = MagicMock()
        oracle.is_connected.return_value = True
        settings = SyncSettings(db_path=tmp_path / "wired.db", push_workers=2)

        service = build_task_service(settings, session=AuthSession("u1"), remote=remote, connectivity=oracle)
        try:
            task_id = service.create_task("t")
            assert service.last_push.result(timeout=5) is True
            assert task_id in remote.documents
            oracle.is_connected.assert_called()
        finally:
            service.close()
