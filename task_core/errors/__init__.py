# =============================================================================
# task_core/errors/__init__.py
# Centralized Error Handling for the task store
# =============================================================================

from .exceptions import (
    TaskSyncError,
    ValidationError,
    AuthError,
    LocalStoreError,
    TaskNotFoundError,
    RemoteSyncError,
    ConfigurationError,
)

from .handlers import (
    handle_error,
    log_sync_failure,
    ErrorContext,
    error_boundary,
)

__all__ = [
    # Exceptions
    "TaskSyncError",
    "ValidationError",
    "AuthError",
    "LocalStoreError",
    "TaskNotFoundError",
    "RemoteSyncError",
    "ConfigurationError",
    # Handlers
    "handle_error",
    "log_sync_failure",
    "ErrorContext",
    "error_boundary",
]
