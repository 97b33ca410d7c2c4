# =============================================================================
# task_core/config.py
# Settings for the local store, the remote collection and the sync engine
# =============================================================================
"""
Configuration lookup order:

1. Environment variables (a ``.env`` file in the project root is loaded first)
2. Streamlit secrets (``.streamlit/secrets.toml``):

       [supabase]
       url = "https://your-project.supabase.co"
       key = "your-anon-key"

3. Defaults
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional
import logging

from dotenv import load_dotenv

from task_core.errors import ConfigurationError

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_DB_PATH = PROJECT_ROOT / "local_data" / "tasks.db"


def _read_streamlit_secrets() -> Mapping[str, Any]:
    """Return the [supabase] secrets section, or {} when none is configured."""
    try:
        import streamlit as st
        if "supabase" in st.secrets:
            return dict(st.secrets["supabase"])
    except Exception as e:
        # No secrets.toml outside a configured Streamlit deployment
        logger.debug(f"Streamlit secrets not available: {e}")
    return {}


def _as_int(key: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            f"{key} must be an integer, got {raw!r}",
            config_key=key,
            expected_type="int",
        )


def _as_float(key: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(
            f"{key} must be a number, got {raw!r}",
            config_key=key,
            expected_type="float",
        )


@dataclass
class SyncSettings:
    """Resolved configuration for one task store instance."""
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    tasks_table: str = "tasks"
    db_path: Path = field(default_factory=lambda: DEFAULT_DB_PATH)
    connection_timeout: float = 5.0
    push_workers: int = 4
    log_level: str = "INFO"

    def __post_init__(self):
        self.db_path = Path(self.db_path)
        if bool(self.supabase_url) != bool(self.supabase_key):
            missing = "SUPABASE_KEY" if self.supabase_url else "SUPABASE_URL"
            raise ConfigurationError(
                f"Supabase is half-configured: {missing} is not set",
                config_key=missing,
            )
        if self.push_workers < 1:
            raise ConfigurationError(
                "push_workers must be at least 1",
                config_key="TASKS_PUSH_WORKERS",
                expected_type="int",
            )

    @property
    def remote_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        secrets: Optional[Mapping[str, Any]] = None,
    ) -> SyncSettings:
        """
        Build settings from environment variables with secrets as fallback.

        Args:
            environ: Mapping to read instead of os.environ
            secrets: [supabase] secrets section (url/key)
        """
        env = os.environ if environ is None else environ
        secrets = secrets or {}

        return cls(
            supabase_url=env.get("SUPABASE_URL") or secrets.get("url"),
            supabase_key=env.get("SUPABASE_KEY") or secrets.get("key"),
            tasks_table=env.get("TASKS_TABLE", "tasks"),
            db_path=Path(env.get("TASKS_DB_PATH", str(DEFAULT_DB_PATH))),
            connection_timeout=_as_float(
                "TASKS_CONNECTION_TIMEOUT", env.get("TASKS_CONNECTION_TIMEOUT", "5")
            ),
            push_workers=_as_int("TASKS_PUSH_WORKERS", env.get("TASKS_PUSH_WORKERS", "4")),
            log_level=env.get("TASKS_LOG_LEVEL", "INFO"),
        )

    def to_display(self) -> dict:
        """Settings with the key masked (for debugging)."""
        return {
            "supabase_url": self.supabase_url or "NOT SET",
            "supabase_key": "*" * 8 if self.supabase_key else "NOT SET",
            "tasks_table": self.tasks_table,
            "db_path": str(self.db_path),
            "connection_timeout": self.connection_timeout,
            "push_workers": self.push_workers,
            "log_level": self.log_level,
        }


def load_settings() -> SyncSettings:
    """Load settings from .env, the environment and Streamlit secrets."""
    load_dotenv(PROJECT_ROOT / ".env")
    return SyncSettings.from_env(secrets=_read_streamlit_secrets())
