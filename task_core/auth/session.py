# =============================================================================
# task_core/auth/session.py
# Signed-in user identity supplied to the task store
# =============================================================================
"""
AuthSession - holds the identity of the currently signed-in user.

Sign-in itself happens outside the task store (an identity provider, the UI);
the store only needs to know *who* is signed in so that every query and write
can be scoped by owner.
"""

from __future__ import annotations
import threading
from typing import Callable, List, Optional
import logging

from task_core.errors import AuthError

logger = logging.getLogger(__name__)


class AuthSession:
    """
    Thread-safe holder for the current user id.

    Usage:
        session = AuthSession()
        session.sign_in("uid-123")
        session.require_user("create task")  # -> "uid-123"
    """

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id or None
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[Optional[str]], None]] = []

    @property
    def user_id(self) -> Optional[str]:
        """Current user id, or None when signed out."""
        with self._lock:
            return self._user_id

    @property
    def is_signed_in(self) -> bool:
        return self.user_id is not None

    def sign_in(self, user_id: str) -> None:
        """Record a signed-in user."""
        if not user_id or not str(user_id).strip():
            raise AuthError("User id must not be empty", operation="sign_in")
        with self._lock:
            self._user_id = str(user_id).strip()
        logger.info(f"Signed in as {self._user_id}")
        self._notify_callbacks()

    def sign_out(self) -> None:
        with self._lock:
            self._user_id = None
        logger.info("Signed out")
        self._notify_callbacks()

    def require_user(self, operation: Optional[str] = None) -> str:
        """
        Return the current user id or raise.

        Raises:
            AuthError: If nobody is signed in
        """
        user_id = self.user_id
        if user_id is None:
            raise AuthError(operation=operation)
        return user_id

    def register_callback(self, callback: Callable[[Optional[str]], None]) -> None:
        """Register a callback for sign-in / sign-out."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[Optional[str]], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        user_id = self.user_id
        for callback in self._callbacks:
            try:
                callback(user_id)
            except Exception as e:
                logger.error(f"Error in auth callback: {e}")
