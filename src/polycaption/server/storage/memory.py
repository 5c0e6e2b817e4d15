"""In-process SessionStore backend."""

from polycaption.common import get_logger
from polycaption.server.errors import (
  InvalidStatusTransition,
  SessionCompletedError,
  UnknownSession,
)
from polycaption.wire import (
  CaptionEntry,
  NewCaptionEntry,
  Session,
  SessionUpdate,
  UserSettings,
)
from polycaption.wire.captions import ALLOWED_STATUS_TRANSITIONS, utc_now


class InMemorySessionStore:
  """
  Keeps sessions, entries and user settings in dictionaries.

  Entries are stored per session in a dict keyed by their generated id, so concurrent appends
  never overwrite each other. None of the methods suspend between reading and writing state,
  which makes each call atomic with respect to other tasks on the event loop.
  """

  def __init__(self) -> None:
    self._sessions: dict[str, Session] = {}
    self._entries: dict[str, dict[str, CaptionEntry]] = {}
    self._settings: dict[str, UserSettings] = {}
    self.logger = get_logger("store/mem")

  async def create_session(
    self,
    source_language: str,
    target_language: str,
    title: str | None = None,
    user_id: str | None = None,
  ) -> Session:
    session = Session(
      source_language=source_language,
      target_language=target_language,
      title=title,
      user_id=user_id,
    )
    self._sessions[session.id] = session
    self._entries[session.id] = {}
    self.logger.info("Session created", session_id=session.id)
    return session

  async def get_session(self, session_id: str) -> Session | None:
    return self._sessions.get(session_id)

  async def list_sessions(self, user_id: str | None = None) -> list[Session]:
    sessions = [s for s in self._sessions.values() if user_id is None or s.user_id == user_id]
    return sorted(sessions, key=lambda s: s.created_at)

  async def update_session(self, session_id: str, update: SessionUpdate) -> Session | None:
    session = self._sessions.get(session_id)
    if session is None:
      return None

    if session.is_completed:
      raise SessionCompletedError(session_id)

    changes = update.model_dump(exclude_none=True)
    requested = changes.get("status")
    if requested is not None and requested != session.status:
      if requested not in ALLOWED_STATUS_TRANSITIONS[session.status]:
        raise InvalidStatusTransition(session_id, session.status, requested)

    updated = session.model_copy(update={**changes, "updated_at": utc_now()})
    self._sessions[session_id] = updated
    self.logger.debug("Session updated", session_id=session_id, status=updated.status)
    return updated

  async def append_entry(self, session_id: str, entry: NewCaptionEntry) -> CaptionEntry:
    session = self._sessions.get(session_id)
    if session is None:
      raise UnknownSession(session_id)
    if session.is_completed:
      raise UnknownSession(session_id, "is completed")

    stored = CaptionEntry(session_id=session_id, **entry.model_dump())
    entries = self._entries[session_id]
    entries[stored.id] = stored
    self.logger.debug(
      "Entry appended", session_id=session_id, entry_id=stored.id, total=len(entries)
    )
    return stored

  async def list_entries(self, session_id: str) -> list[CaptionEntry]:
    # sorted() is stable, so equal timestamps keep their append order
    return sorted(self._entries.get(session_id, {}).values(), key=lambda e: e.timestamp)

  async def get_user_settings(self, user_id: str) -> UserSettings | None:
    return self._settings.get(user_id)

  async def update_user_settings(self, user_id: str, settings: dict) -> UserSettings:
    existing = self._settings.get(user_id)
    if existing is None:
      stored = UserSettings(user_id=user_id, settings=settings)
    else:
      stored = existing.model_copy(update={"settings": settings, "updated_at": utc_now()})
    self._settings[user_id] = stored
    return stored
