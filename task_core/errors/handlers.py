# =============================================================================
# task_core/errors/handlers.py
# Error Handling Utilities for the task store
# =============================================================================

from __future__ import annotations
import functools
import traceback
from typing import Optional, Callable, TypeVar, Any
import streamlit as st

from task_core.logging import get_logger
from .exceptions import TaskSyncError

logger = get_logger(__name__)

T = TypeVar("T")


def _describe(error: Exception, user_message: Optional[str] = None):
    if isinstance(error, TaskSyncError):
        return user_message or error.message, error.code, error.details, error.recoverable
    return (
        user_message or str(error),
        "UNKNOWN",
        {"traceback": traceback.format_exc()},
        True,
    )


def handle_error(
    error: Exception,
    show_user_message: bool = True,
    log_error: bool = True,
    user_message: Optional[str] = None,
) -> None:
    """
    Centralized error handling function.

    Args:
        error: The exception to handle
        show_user_message: Whether to display error to user via st.error
        log_error: Whether to log the error
        user_message: Custom message to show user (uses error message if None)
    """
    message, code, details, recoverable = _describe(error, user_message)

    if log_error:
        logger.error(
            f"[{code}] {message}",
            extra={"details": details},
            exc_info=error,
        )

    if show_user_message:
        if recoverable:
            st.error(f"Error: {message}")
        else:
            st.error(f"Critical Error: {message}. Please check the configuration.")


def log_sync_failure(error: Exception, operation: str, task_id: Optional[str] = None) -> None:
    """
    Log a push/pull failure without surfacing it.

    Remote failures are expected when connectivity flaps, so the traceback is
    only attached at DEBUG level.
    """
    message, code, details, _ = _describe(error)
    logger.warning(f"[{code}] {operation} failed for task={task_id or '-'}: {message}")
    logger.debug(f"{operation} failure details: {details}", exc_info=error)


class ErrorContext:
    """
    Context manager for error handling with automatic logging and user feedback.

    Usage:
        with ErrorContext("Saving task"):
            service.create_task(title)

        # On a TaskSyncError, logs and shows: "Error: <message>"
    """

    def __init__(
        self,
        operation: str,
        recoverable: bool = True,
        show_user_message: bool = True,
    ):
        self.operation = operation
        self.recoverable = recoverable
        self.show_user_message = show_user_message
        self.error: Optional[BaseException] = None

    def __enter__(self) -> ErrorContext:
        logger.debug(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None:
            logger.debug(f"Completed: {self.operation}")
            return False

        if not issubclass(exc_type, Exception):
            return False

        self.error = exc_val
        if isinstance(exc_val, TaskSyncError):
            handle_error(exc_val, show_user_message=self.show_user_message)
        else:
            handle_error(
                exc_val,
                show_user_message=self.show_user_message,
                user_message=f"Error during: {self.operation}",
            )

        # Suppress exception if recoverable
        return self.recoverable


def error_boundary(
    default_return: Any = None,
    error_message: Optional[str] = None,
    log: bool = True,
):
    """
    Decorator to wrap UI callbacks with error handling.

    Usage:
        @error_boundary(default_return=[], error_message="Could not load tasks")
        def load_tasks():
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., Optional[T]]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Optional[T]:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if log:
                    logger.error(
                        f"Error in {func.__name__}: {e}",
                        exc_info=True,
                    )
                if error_message:
                    st.error(error_message)
                return default_return

        return wrapper

    return decorator
