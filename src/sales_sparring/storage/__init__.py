"""
Storage module - session persistence backends.

PostgresSessionStore is imported from sales_sparring.storage.postgres
directly so that asyncpg is only loaded when it is used.
"""

from .base import SessionStore
from .memory import InMemorySessionStore

__all__ = ["SessionStore", "InMemorySessionStore"]
