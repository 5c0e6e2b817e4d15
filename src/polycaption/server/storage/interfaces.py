"""
Protocol interface for caption persistence.

The coordinator and the HTTP API receive a SessionStore at construction time; any backend
honoring this contract can replace the in-memory one.
"""

from typing import Protocol

from polycaption.wire import CaptionEntry, NewCaptionEntry, Session, SessionUpdate, UserSettings


class SessionStore(Protocol):
  async def create_session(
    self,
    source_language: str,
    target_language: str,
    title: str | None = None,
    user_id: str | None = None,
  ) -> Session:
    """Create a session in the `active` state."""
    ...

  async def get_session(self, session_id: str) -> Session | None: ...

  async def list_sessions(self, user_id: str | None = None) -> list[Session]: ...

  async def update_session(self, session_id: str, update: SessionUpdate) -> Session | None:
    """
    Apply a partial update and refresh `updated_at`.

    :returns: The updated session, or None if it does not exist.
    :raises SessionCompletedError: If the session is already completed.
    :raises InvalidStatusTransition: If the requested status change is not allowed.
    """
    ...

  async def append_entry(self, session_id: str, entry: NewCaptionEntry) -> CaptionEntry:
    """
    Append an entry to a session. Safe under concurrent calls for the same session.

    :raises UnknownSession: If the session does not exist or is completed.
    """
    ...

  async def list_entries(self, session_id: str) -> list[CaptionEntry]:
    """Entries of a session ordered by `timestamp`, whatever order they were appended in."""
    ...

  async def get_user_settings(self, user_id: str) -> UserSettings | None: ...

  async def update_user_settings(self, user_id: str, settings: dict) -> UserSettings: ...
