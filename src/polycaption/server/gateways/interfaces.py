"""
Protocol interfaces and result types for the remote engine gateways.

The coordinator and the HTTP API depend on these structural types only, so tests and
alternative providers can stand in for the HTTP implementations.
"""

from typing import Protocol

from pydantic import BaseModel, Field

from polycaption.server.config import ResponseFormat


class TranscriptionOptions(BaseModel):
  """Per-request options for the transcription engine."""

  language: str | None = None
  """Language name as chosen by the user; "auto" or None lets the engine detect it."""

  speaker_labels: bool = False
  min_speakers: int | None = Field(default=None, gt=0)
  max_speakers: int | None = Field(default=None, gt=0)
  prompt: str | None = None
  response_format: ResponseFormat | None = None
  """Overrides the configured batch format. Live chunks always use the streaming format."""


class TranscriptSegment(BaseModel):
  text: str
  start: float
  """Segment start in seconds from the beginning of the audio."""

  end: float
  speaker: str | None = None


class TranscriptionResult(BaseModel):
  """Normalized transcript returned by the engine."""

  text: str
  duration: float | None = None
  """Audio duration in seconds, when the engine reports it."""

  segments: list[TranscriptSegment] | None = None


class TranslationResult(BaseModel):
  translated_text: str
  detected_source_language: str | None = None
  confidence: float | None = None


class TranscriptionGateway(Protocol):
  """Turns raw audio (or a media URL) into transcript text."""

  @property
  def configured(self) -> bool:
    """Whether credentials for the engine are available."""
    ...

  async def transcribe(self, audio: bytes, options: TranscriptionOptions) -> TranscriptionResult:
    """
    Transcribe a complete file with full segment detail.

    :raises TranscriptionFailure: On network errors, timeouts, non-2xx or malformed responses.
    """
    ...

  async def transcribe_stream(
    self, audio: bytes, options: TranscriptionOptions
  ) -> TranscriptionResult:
    """Transcribe one live chunk using the cheapest response format."""
    ...

  async def transcribe_url(self, url: str, options: TranscriptionOptions) -> TranscriptionResult:
    """Transcribe remote media fetched by the engine itself."""
    ...


class TranslationGateway(Protocol):
  """Translates transcript text through a remote language model."""

  @property
  def configured(self) -> bool: ...

  async def translate(
    self,
    text: str,
    source_language: str | None,
    target_language: str,
    context: str | None = None,
  ) -> TranslationResult:
    """
    Translate `text` into `target_language`. Never skips a no-op translation itself.

    :raises TranslationFailure: On network errors or a response that cannot be parsed.
    """
    ...

  async def batch_translate(
    self,
    texts: list[str],
    source_language: str | None,
    target_language: str,
    context: str | None = None,
  ) -> list[TranslationResult]:
    """Translate all texts concurrently; result i belongs to texts[i]."""
    ...
