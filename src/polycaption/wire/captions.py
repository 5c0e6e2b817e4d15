"""
Caption data types shared between the server, its HTTP API and clients.

Contains the session and caption entry records produced by the streaming pipeline, plus the
per-user settings bag that supplies language defaults.
"""

import time
import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def generate_id() -> str:
  """Return a fresh opaque identifier."""
  return uuid.uuid4().hex


def utc_now() -> datetime:
  return datetime.now(UTC)


def now_ms() -> int:
  """Current wall-clock time in integer milliseconds."""
  return int(time.time() * 1000)


class CamelModel(BaseModel):
  """Base model serialized with camelCase keys, accepting either spelling on input."""

  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionStatus(StrEnum):
  ACTIVE = "active"
  PAUSED = "paused"
  COMPLETED = "completed"


ALLOWED_STATUS_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
  SessionStatus.ACTIVE: frozenset({SessionStatus.PAUSED, SessionStatus.COMPLETED}),
  SessionStatus.PAUSED: frozenset({SessionStatus.ACTIVE}),
  SessionStatus.COMPLETED: frozenset(),
}


class Session(CamelModel):
  """A logical grouping of caption entries produced by one recording or upload."""

  id: str = Field(default_factory=generate_id)
  source_language: str = "auto"
  """Language spoken in the audio, or "auto" to let the engine detect it."""

  target_language: str = "english"
  """Language captions are translated into."""

  status: SessionStatus = SessionStatus.ACTIVE
  title: str | None = None
  user_id: str | None = None
  created_at: datetime = Field(default_factory=utc_now)
  updated_at: datetime = Field(default_factory=utc_now)

  @property
  def is_completed(self) -> bool:
    return self.status == SessionStatus.COMPLETED


class SessionUpdate(CamelModel):
  """Partial update for a session. Fields left as None are not touched."""

  source_language: str | None = None
  target_language: str | None = None
  status: SessionStatus | None = None
  title: str | None = None


class NewCaptionEntry(CamelModel):
  """Fields supplied by the caller when appending an entry to a session."""

  original_text: str
  translated_text: str | None = None
  speaker_label: str | None = None
  timestamp: int = Field(ge=0)
  """Offset of the audio chunk in milliseconds, not the time of the append."""

  confidence: int | None = Field(default=None, ge=0, le=100)

  @field_validator("original_text")
  @classmethod
  def validate_original_text(cls, value: str) -> str:
    if not value.strip():
      raise ValueError("original_text must not be empty")
    return value


class CaptionEntry(NewCaptionEntry):
  """An immutable caption entry owned by a session."""

  model_config = ConfigDict(frozen=True)

  id: str = Field(default_factory=generate_id)
  session_id: str
  created_at: datetime = Field(default_factory=utc_now)


class UserSettings(CamelModel):
  """Free-form per-user settings; only the language defaults matter to the pipeline."""

  user_id: str
  settings: dict = Field(default_factory=dict)
  created_at: datetime = Field(default_factory=utc_now)
  updated_at: datetime = Field(default_factory=utc_now)

  @property
  def source_language(self) -> str | None:
    return self.settings.get("sourceLanguage") or self.settings.get("defaultSourceLanguage")

  @property
  def target_language(self) -> str | None:
    return self.settings.get("targetLanguage") or self.settings.get("defaultTargetLanguage")
