# =============================================================================
# tests/unit/test_connection_manager.py
# Unit Tests for the ConnectionManager
# =============================================================================

import socket
from unittest.mock import MagicMock

import pytest

from task_core.offline.connection_manager import ConnectionManager, ConnectionStatus


@pytest.fixture
def listening_socket():
    """A local TCP listener to probe against"""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    yield server
    server.close()


@pytest.fixture
def closed_port():
    """A local port with nothing listening on it"""
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    return port


class TestTargets:
    """Test which hosts get probed"""

    def test_remote_url_host_and_default_port(self):
        manager = ConnectionManager(remote_url="https://abc.supabase.co")
        assert manager._targets == [("abc.supabase.co", 443)]

    def test_explicit_port_kept(self):
        manager = ConnectionManager(remote_url="http://localhost:54321")
        assert manager._targets == [("localhost", 54321)]

    def test_fallback_hosts_without_remote(self):
        manager = ConnectionManager(fallback_hosts=[("10.0.0.1", 53)])
        assert manager._targets == [("10.0.0.1", 53)]


class TestChecks:
    """Test live probes against local sockets"""

    def test_reachable_host_is_online(self, listening_socket):
        port = listening_socket.getsockname()[1]
        manager = ConnectionManager(remote_url=f"http://127.0.0.1:{port}", timeout=1)

        assert manager.is_connected() is True
        assert manager.status == ConnectionStatus.ONLINE
        assert manager.state.consecutive_failures == 0

    def test_unreachable_host_is_offline(self, closed_port):
        manager = ConnectionManager(remote_url=f"http://127.0.0.1:{closed_port}", timeout=1)

        assert manager.is_connected() is False
        assert manager.status == ConnectionStatus.OFFLINE
        assert manager.state.consecutive_failures == 1
        assert manager.state.error_message

    def test_every_call_probes_again(self, listening_socket, monkeypatch):
        port = listening_socket.getsockname()[1]
        manager = ConnectionManager(remote_url=f"http://127.0.0.1:{port}", timeout=1)
        probe = MagicMock(side_effect=[True, False])
        monkeypatch.setattr(manager, "_probe", probe)

        assert manager.is_connected() is True
        assert manager.is_connected() is False
        assert probe.call_count == 2


class TestOverrideAndCallbacks:
    """Test forced offline mode and status callbacks"""

    def test_force_offline_skips_probe(self, listening_socket):
        port = listening_socket.getsockname()[1]
        manager = ConnectionManager(remote_url=f"http://127.0.0.1:{port}", timeout=1)

        manager.force_offline()
        assert manager.is_connected() is False

        manager.clear_override()
        assert manager.is_connected() is True

    def test_callback_only_on_status_change(self, monkeypatch):
        manager = ConnectionManager(fallback_hosts=[])
        seen = []
        manager.register_callback(lambda state: seen.append(state.status))
        monkeypatch.setattr(manager, "_probe", MagicMock(side_effect=[True, True, False]))

        manager.is_connected()
        manager.is_connected()
        manager.is_connected()

        assert seen == [ConnectionStatus.ONLINE, ConnectionStatus.OFFLINE]

    def test_status_display(self):
        manager = ConnectionManager(fallback_hosts=[])
        manager.force_offline()
        display = manager.get_status_display()
        assert display["status"] == "offline"
        assert display["forced_offline"] is True
