# =============================================================================
# task_core/errors/exceptions.py
# Custom Exception Hierarchy for the task store
# =============================================================================

from typing import Optional, Dict, Any


class TaskSyncError(Exception):
    """
    Base exception for all task store errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "TASK_001")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "TS_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# MUTATION API EXCEPTIONS
# =============================================================================

class ValidationError(TaskSyncError):
    """Raised when task input fails validation (e.g. an empty title)"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value

        super().__init__(
            message=message,
            code="TASK_001",
            details=details,
            **kwargs,
        )


class AuthError(TaskSyncError):
    """Raised when an operation needs a signed-in user and there is none"""

    def __init__(self, message: str = "No signed-in user", operation: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation

        super().__init__(
            message=message,
            code="AUTH_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# STORAGE EXCEPTIONS
# =============================================================================

class LocalStoreError(TaskSyncError):
    """Raised when a local transaction fails; the transaction is rolled back"""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        task_id: Optional[str] = None,
        code: str = "STORE_001",
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        if task_id:
            details["task_id"] = task_id

        super().__init__(
            message=message,
            code=code,
            details=details,
            **kwargs,
        )


class TaskNotFoundError(LocalStoreError):
    """Raised when a task id does not exist locally for the current user"""

    def __init__(self, task_id: str, **kwargs):
        super().__init__(
            message=f"Task {task_id} not found",
            task_id=task_id,
            code="STORE_002",
            **kwargs,
        )


# =============================================================================
# SYNC EXCEPTIONS
# =============================================================================

class RemoteSyncError(TaskSyncError):
    """
    Raised by remote document stores when a get/set/update/delete fails.

    Never reaches callers of the mutation API; the sync engine logs it and
    leaves the record's synced flag false.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        doc_id: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        if doc_id:
            details["doc_id"] = doc_id

        super().__init__(
            message=message,
            code="SYNC_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(TaskSyncError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
