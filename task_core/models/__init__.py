from .task import (
    Task,
    DOCUMENT_FIELDS,
    new_task_id,
    to_remote_key,
    parse_timestamp,
    format_timestamp,
    utcnow,
)

__all__ = [
    "Task",
    "DOCUMENT_FIELDS",
    "new_task_id",
    "to_remote_key",
    "parse_timestamp",
    "format_timestamp",
    "utcnow",
]
