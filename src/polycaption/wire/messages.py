"""
Pydantic message protocol models for WebSocket communication.

Defines one model per message kind exchanged on the caption channel. Every message carries a
`type` discriminator so that the codec can decode the union exhaustively.
"""

from typing import Annotated, Literal

from pydantic import AliasChoices, Field

from polycaption.wire.captions import CamelModel


class AudioChunkMessage(CamelModel):
  """One bounded slice of captured audio sent by the client for transcription."""

  type: Literal["audio_chunk"] = "audio_chunk"
  audio: str = Field(description="Base64-encoded audio payload")
  session_id: str | None = Field(default=None, description="Session the result is stored in")
  language: str | None = Field(
    default=None,
    validation_alias=AliasChoices("language", "sourceLanguage"),
    description='Spoken language name, or "auto"',
  )
  target_language: str | None = Field(default=None, description="Caption translation target")
  speaker_labels: bool | None = Field(default=None, description="Ask the engine for speakers")
  speaker_label: str | None = Field(default=None, description="Label stored with the entry")
  timestamp: int | None = Field(
    default=None, ge=0, description="Capture-side offset of the chunk in milliseconds"
  )


class TranscriptionResultMessage(CamelModel):
  """Caption produced from one audio chunk."""

  type: Literal["transcription_result"] = "transcription_result"
  original_text: str
  translated_text: str = ""
  timestamp: int
  speaker_label: str | None = None


class ErrorMessage(CamelModel):
  """Message indicating that one request failed. The connection stays usable."""

  type: Literal["error"] = "error"
  message: str = Field(description="Human-readable reason")


# Discriminated union for all outbound message types
OutboundMessage = Annotated[
  TranscriptionResultMessage | ErrorMessage,
  Field(discriminator="type"),
]
