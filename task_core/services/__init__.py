# =============================================================================
# task_core/services/__init__.py
# Service Layer - the API the UI talks to
# =============================================================================

from .base_service import BaseService
from .task_service import TaskService, build_task_service

__all__ = [
    "BaseService",
    "TaskService",
    "build_task_service",
]
