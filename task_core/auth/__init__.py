from .session import AuthSession

__all__ = ["AuthSession"]
