# =============================================================================
# task_core/models/task.py
# Task entity and its local-row / remote-document mappings
# =============================================================================
"""
Data model for the task store.

A Task lives in two places: a row in the local SQLite store (snake_case
columns, plus the local-only ``synced`` flag) and a document in the remote
collection (camelCase fields, keyed by the task id). Both sides share the same
id space, so no translation table is needed.
"""

from __future__ import annotations
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

# Fields every remote document carries, in the remote naming
DOCUMENT_FIELDS = ("title", "description", "isCompleted", "createdAt", "updatedAt", "userId")


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_task_id() -> str:
    """Generate a globally unique task id."""
    return uuid.uuid4().hex


def to_remote_key(task_id: str) -> str:
    """Convert a task id to the remote store's document key."""
    return str(task_id)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Coerce a stored or remote timestamp to an aware UTC datetime.

    Accepts datetimes, ISO 8601 strings (with or without a trailing "Z"),
    epoch seconds, and ``{"seconds": ..., "nanoseconds": ...}`` mappings as
    produced by document databases. Naive values are taken as UTC.

    Raises:
        ValueError: If the value cannot be read as a timestamp
    """
    if value is None or value == "":
        return None

    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            parsed = datetime.fromtimestamp(value, tz=timezone.utc)
        elif isinstance(value, Mapping) and "seconds" in value:
            seconds = value["seconds"] + value.get("nanoseconds", 0) / 1e9
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
        elif isinstance(value, str):
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        else:
            raise ValueError(f"Unsupported timestamp value: {value!r}")

        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except (TypeError, OverflowError, OSError) as e:
        raise ValueError(f"Invalid timestamp value {value!r}: {e}") from e


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime for storage (ISO 8601, UTC)."""
    return parse_timestamp(value).isoformat()


@dataclass
class Task:
    """
    A single to-do item owned by one user.

    ``synced`` is true iff the current field values are known to be durably
    written to the remote store; any local mutation resets it.
    """
    title: str
    user_id: str
    description: Optional[str] = None
    is_completed: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None
    synced: bool = False
    id: str = field(default_factory=new_task_id)

    def __post_init__(self):
        """Normalize timestamps and keep created_at <= updated_at."""
        self.created_at = parse_timestamp(self.created_at) or utcnow()
        self.updated_at = parse_timestamp(self.updated_at) or self.created_at
        if self.updated_at < self.created_at:
            self.updated_at = self.created_at
        self.is_completed = bool(self.is_completed)
        self.synced = bool(self.synced)

    # -------------------------------------------------------------------------
    # Local rows
    # -------------------------------------------------------------------------

    def to_row(self) -> Dict[str, Any]:
        """Convert to a column:value dict for the local store."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "is_completed": int(self.is_completed),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "synced": int(self.synced),
            "user_id": self.user_id,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Task:
        """Create from a local store row (sqlite3.Row or dict)."""
        return cls(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            is_completed=bool(row["is_completed"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            synced=bool(row["synced"]),
            user_id=row["user_id"],
        )

    # -------------------------------------------------------------------------
    # Remote documents
    # -------------------------------------------------------------------------

    def to_document(self, updated_at: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Build the full remote payload for the create/edit push path.

        Args:
            updated_at: Timestamp to send as updatedAt (defaults to now)
        """
        return {
            "title": self.title,
            "description": self.description,
            "isCompleted": self.is_completed,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(updated_at or utcnow()),
            "userId": self.user_id,
        }

    def completion_patch(self, updated_at: Optional[datetime] = None) -> Dict[str, Any]:
        """Build the narrow payload for the toggle-complete push path."""
        return {
            "isCompleted": self.is_completed,
            "updatedAt": format_timestamp(updated_at or utcnow()),
        }

    @classmethod
    def from_document(
        cls,
        doc_id: str,
        data: Mapping[str, Any],
        default_created_at: Optional[datetime] = None,
    ) -> Task:
        """
        Create a synced Task from a remote document.

        Raises:
            ValueError: If the document has no usable title or owner
        """
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ValueError(f"Document {doc_id} has no title")

        user_id = data.get("userId")
        if not user_id:
            raise ValueError(f"Document {doc_id} has no userId")

        created_at = parse_timestamp(data.get("createdAt")) or default_created_at or utcnow()
        updated_at = parse_timestamp(data.get("updatedAt")) or created_at

        description = data.get("description")
        if description is not None and not isinstance(description, str):
            description = str(description)

        return cls(
            id=str(doc_id),
            title=title,
            description=description,
            is_completed=bool(data.get("isCompleted", False)),
            created_at=created_at,
            updated_at=updated_at,
            synced=True,
            user_id=str(user_id),
        )

    def with_changes(self, **changes) -> Task:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)
