"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .attempt_store import AttemptStore, AttemptWindow
from .database_attempt_store import DatabaseAttemptStore

__all__ = ['AttemptStore', 'AttemptWindow', 'DatabaseAttemptStore']
