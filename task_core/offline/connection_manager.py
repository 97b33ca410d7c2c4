# =============================================================================
# task_core/offline/connection_manager.py
# Connection Status Detection
# =============================================================================
"""
ConnectionManager - point-in-time reachability checks before sync attempts.

Features:
- Fresh probe on every is_connected() call (no stale cached answer)
- Probes the remote host when one is configured, public DNS hosts otherwise
- Manual offline override (user preference or tests)
- Event callbacks for status changes

A positive answer is not a guarantee: a push may still fail afterwards. The
check only avoids doomed attempts when the device is clearly offline.
"""

from __future__ import annotations
import socket
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse
import logging

logger = logging.getLogger(__name__)

FALLBACK_HOSTS: Tuple[Tuple[str, int], ...] = (
    ("8.8.8.8", 53),         # Google DNS
    ("1.1.1.1", 53),         # Cloudflare DNS
    ("208.67.222.222", 53),  # OpenDNS
)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    forced_offline: bool = False
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None


class ConnectionManager:
    """
    Reachability oracle consulted before every pull and push.

    Usage:
        manager = ConnectionManager(remote_url=settings.supabase_url)
        if manager.is_connected():
            ...
    """

    def __init__(
        self,
        remote_url: Optional[str] = None,
        timeout: float = 5.0,
        fallback_hosts: Sequence[Tuple[str, int]] = FALLBACK_HOSTS,
    ):
        """
        Args:
            remote_url: URL of the remote store; its host is probed when set
            timeout: Seconds to wait for each TCP connect
            fallback_hosts: (host, port) pairs probed when no remote URL is set
        """
        self.timeout = timeout
        self._targets = self._resolve_targets(remote_url, fallback_hosts)
        self._state = ConnectionState()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[ConnectionState], None]] = []

    @staticmethod
    def _resolve_targets(remote_url, fallback_hosts) -> List[Tuple[str, int]]:
        if remote_url:
            parsed = urlparse(remote_url)
            if parsed.hostname:
                default_port = 80 if parsed.scheme == "http" else 443
                return [(parsed.hostname, parsed.port or default_port)]
        return list(fallback_hosts)

    @property
    def state(self) -> ConnectionState:
        """Get the result of the last check."""
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    def is_connected(self) -> bool:
        """Perform a check now and report whether the remote looks reachable."""
        return self.check_connection().status == ConnectionStatus.ONLINE

    def check_connection(self) -> ConnectionState:
        """
        Perform a connection check and update state.

        Returns:
            Updated ConnectionState
        """
        with self._lock:
            old_status = self._state.status
            self._state.last_check = datetime.now()

            if self._state.forced_offline:
                reachable = False
                self._state.error_message = "Forced offline"
            else:
                reachable = self._probe()

            if reachable:
                self._state.status = ConnectionStatus.ONLINE
                self._state.last_online = self._state.last_check
                self._state.consecutive_failures = 0
                self._state.error_message = None
            else:
                self._state.status = ConnectionStatus.OFFLINE
                self._state.consecutive_failures += 1

            changed = old_status != self._state.status

        if changed:
            logger.info(f"Connection status changed: {old_status.value} -> {self._state.status.value}")
            self._notify_callbacks()

        return self._state

    def _probe(self) -> bool:
        """Try a TCP connect to each target until one succeeds."""
        for host, port in self._targets:
            try:
                with socket.create_connection((host, port), timeout=self.timeout):
                    return True
            except OSError as e:
                self._state.error_message = f"{host}:{port} unreachable: {e}"
                logger.debug(self._state.error_message)
        return False

    def force_offline(self) -> None:
        """Force offline mode (for testing or user preference)."""
        with self._lock:
            self._state.forced_offline = True
        logger.info("Forced offline mode")
        self.check_connection()

    def clear_override(self) -> None:
        """Return to probing the network."""
        with self._lock:
            self._state.forced_offline = False
        logger.info("Offline override cleared")

    def register_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """
        Register a callback for connection status changes.

        Args:
            callback: Function called with ConnectionState when status changes
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        """Notify all registered callbacks of status change."""
        for callback in list(self._callbacks):
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in connection callback: {e}")

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "forced_offline": self._state.forced_offline,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "failures": self._state.consecutive_failures,
            "error": self._state.error_message,
        }
