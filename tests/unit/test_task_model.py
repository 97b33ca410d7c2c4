# =============================================================================
# tests/unit/test_task_model.py
# Unit Tests for the Task model and its mappings
# =============================================================================

from datetime import datetime, timedelta, timezone

import pytest

from task_core.models import DOCUMENT_FIELDS, Task, parse_timestamp, to_remote_key


class TestTimestamps:
    """Test timestamp coercion"""

    def test_iso_string_with_z_suffix(self):
        parsed = parse_timestamp("2024-03-01T10:00:00Z")
        assert parsed == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

    def test_naive_datetime_taken_as_utc(self):
        parsed = parse_timestamp(datetime(2024, 3, 1, 10, 0))
        assert parsed.tzinfo == timezone.utc

    def test_offset_converted_to_utc(self):
        parsed = parse_timestamp("2024-03-01T12:00:00+02:00")
        assert parsed == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

    def test_epoch_and_seconds_mapping(self):
        expected = datetime(2024, 3, 1, tzinfo=timezone.utc)
        seconds = expected.timestamp()
        assert parse_timestamp(seconds) == expected
        assert parse_timestamp({"seconds": int(seconds), "nanoseconds": 0}) == expected

    def test_empty_values_are_none(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_unsupported_type_rejected(self):
        with pytest.raises(ValueError):
            parse_timestamp(["2024"])


class TestTaskInvariants:
    """Test model-level invariants"""

    def test_defaults(self):
        task = Task(title="Buy milk", user_id="u1")
        assert task.is_completed is False
        assert task.synced is False
        assert task.updated_at == task.created_at
        assert len(task.id) == 32

    def test_ids_are_unique(self):
        ids = {Task(title="t", user_id="u1").id for _ in range(100)}
        assert len(ids) == 100

    def test_updated_at_never_before_created_at(self):
        created = datetime(2024, 1, 2, tzinfo=timezone.utc)
        task = Task(title="t", user_id="u1", created_at=created, updated_at=created - timedelta(days=1))
        assert task.updated_at == created

    def test_row_round_trip_preserves_fields(self):
        task = Task(title="t", user_id="u1", description="d", is_completed=True, synced=True)
        assert Task.from_row(task.to_row()) == task


class TestDocuments:
    """Test remote document mapping"""

    def test_document_has_exactly_the_remote_fields(self):
        task = Task(title="t", user_id="u1")
        assert set(task.to_document()) == set(DOCUMENT_FIELDS)

    def test_document_uses_fresh_updated_at(self):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        task = Task(title="t", user_id="u1", created_at=created)
        doc = task.to_document()
        assert parse_timestamp(doc["updatedAt"]) > created
        assert parse_timestamp(doc["createdAt"]) == created

    def test_completion_patch_is_narrow(self):
        task = Task(title="t", user_id="u1", is_completed=True)
        assert set(task.completion_patch()) == {"isCompleted", "updatedAt"}
        assert task.completion_patch()["isCompleted"] is True

    def test_from_document_is_synced(self):
        doc = {
            "title": "Remote",
            "description": None,
            "isCompleted": True,
            "createdAt": "2024-01-01T00:00:00+00:00",
            "updatedAt": "2024-01-02T00:00:00+00:00",
            "userId": "u1",
        }
        task = Task.from_document("abc", doc)
        assert task.synced is True
        assert task.id == "abc"
        assert task.is_completed is True
        assert task.updated_at == datetime(2024, 1, 2, tzinfo=timezone.utc)

    def test_from_document_missing_created_at_uses_default(self):
        fallback = datetime(2023, 5, 5, tzinfo=timezone.utc)
        task = Task.from_document("abc", {"title": "t", "userId": "u1"}, default_created_at=fallback)
        assert task.created_at == fallback
        assert task.updated_at == fallback

    @pytest.mark.parametrize("doc", [
        {"userId": "u1"},
        {"title": "   ", "userId": "u1"},
        {"title": "t"},
    ])
    def test_from_document_rejects_unusable_documents(self, doc):
        with pytest.raises(ValueError):
            Task.from_document("abc", doc)

    def test_remote_key_is_the_task_id(self):
        task = Task(title="t", user_id="u1")
        assert to_remote_key(task.id) == task.id

    def test_remote_key_keeps_case(self):
        assert to_remote_key("ABCdef") == "ABCdef"

    def test_non_text_description_coerced(self):
        task = Task.from_document("abc", {"title": "t", "userId": "u1", "description": 42})
        assert task.description == "42"


class TestMalformedTimestamps:
    """Test that unreadable timestamps surface as ValueError"""

    @pytest.mark.parametrize("value", [
        {"seconds": "oops"},
        {"seconds": 0, "nanoseconds": "x"},
        10 ** 20,
        "not a date",
    ])
    def test_rejected_as_value_error(self, value):
        with pytest.raises(ValueError):
            parse_timestamp(value)

    def test_document_with_bad_created_at_rejected(self):
        with pytest.raises(ValueError):
            Task.from_document("abc", {"title": "t", "userId": "u1", "createdAt": {"seconds": "oops"}})
