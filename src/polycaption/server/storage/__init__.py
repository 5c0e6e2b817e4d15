"""
Caption persistence: the SessionStore contract and its in-memory backend.
"""

from polycaption.server.storage.interfaces import SessionStore
from polycaption.server.storage.memory import InMemorySessionStore

__all__ = ["InMemorySessionStore", "SessionStore"]
