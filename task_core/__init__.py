"""
Local-first task store

Keeps an on-device SQLite task store and a remote document collection
consistent for one signed-in user, tolerating intermittent connectivity.
"""

from task_core.models import Task
from task_core.auth import AuthSession
from task_core.services import TaskService, build_task_service

__all__ = [
    "Task",
    "AuthSession",
    "TaskService",
    "build_task_service",
]

__version__ = "0.1.0"
