"""Shared fakes for the caption pipeline tests."""

import asyncio
import base64
import json
import uuid

import pytest

from polycaption.server.config import StreamingConfig
from polycaption.server.gateways import (
  TranscriptionOptions,
  TranscriptionResult,
  TranslationResult,
)
from polycaption.server.storage import InMemorySessionStore
from polycaption.server.streaming import StreamingCoordinator
from polycaption.wire import TranscriptionResultMessage


def encode_audio(data: bytes = b"\x00\x01fake-webm") -> str:
  return base64.b64encode(data).decode("ascii")


def audio_chunk_frame(**fields) -> str:
  """JSON text of an audio_chunk message with camelCase keys."""
  return json.dumps({"type": "audio_chunk", "audio": encode_audio(), **fields})


class FakeTranscriptionGateway:
  def __init__(self, text: str = "hello", duration: float | None = None):
    self.text = text
    self.duration = duration
    self.error: Exception | None = None
    self.configured = True
    self.calls: list[tuple[bytes | str, TranscriptionOptions]] = []
    # Seconds to wait before answering, per audio payload or URL
    self.delays: dict[bytes | str, float] = {}

  async def _respond(self, source: bytes | str, options: TranscriptionOptions):
    self.calls.append((source, options))
    await asyncio.sleep(self.delays.get(source, 0))
    if self.error is not None:
      raise self.error
    return TranscriptionResult(text=self.text, duration=self.duration)

  async def transcribe(self, audio: bytes, options: TranscriptionOptions) -> TranscriptionResult:
    return await self._respond(audio, options)

  async def transcribe_stream(
    self, audio: bytes, options: TranscriptionOptions
  ) -> TranscriptionResult:
    return await self._respond(audio, options)

  async def transcribe_url(self, url: str, options: TranscriptionOptions) -> TranscriptionResult:
    return await self._respond(url, options)


class FakeTranslationGateway:
  def __init__(self, translations: dict[str, str] | None = None):
    self.translations = translations or {"hello": "hola"}
    self.error: Exception | None = None
    self.configured = True
    self.calls: list[tuple[str, str | None, str, str | None]] = []

  async def translate(self, text, source_language, target_language, context=None):
    self.calls.append((text, source_language, target_language, context))
    if self.error is not None:
      raise self.error
    return TranslationResult(
      translated_text=self.translations.get(text, f"[{target_language}] {text}"),
      detected_source_language="en",
      confidence=0.9,
    )

  async def batch_translate(self, texts, source_language, target_language, context=None):
    return [await self.translate(t, source_language, target_language, context) for t in texts]


class RecordingSink:
  """ResultSink that keeps everything it was asked to send, in order."""

  def __init__(self):
    self.events: list[TranscriptionResultMessage | str] = []
    self.closed = False

  @property
  def results(self) -> list[TranscriptionResultMessage]:
    return [e for e in self.events if isinstance(e, TranscriptionResultMessage)]

  @property
  def errors(self) -> list[str]:
    return [e for e in self.events if isinstance(e, str)]

  async def send_result(self, result: TranscriptionResultMessage) -> None:
    self.events.append(result)

  async def send_error(self, error: str) -> None:
    self.events.append(error)

  def close(self) -> None:
    self.closed = True


class FakeWebSocket:
  """
  Minimal stand-in for a server connection: yields the given frames, then stays open until
  `finish()` is called.
  """

  def __init__(self, frames: list[str]):
    self.id = uuid.uuid4()
    self.frames = frames
    self.sent: list[dict] = []
    self.consumed = asyncio.Event()
    self.finished = asyncio.Event()

  def __aiter__(self):
    return self._frames()

  async def _frames(self):
    for frame in self.frames:
      yield frame
    self.consumed.set()
    await self.finished.wait()

  def finish(self) -> None:
    self.finished.set()

  async def send(self, data: str) -> None:
    self.sent.append(json.loads(data))


@pytest.fixture
def transcription() -> FakeTranscriptionGateway:
  return FakeTranscriptionGateway()


@pytest.fixture
def translation() -> FakeTranslationGateway:
  return FakeTranslationGateway()


@pytest.fixture
def store() -> InMemorySessionStore:
  return InMemorySessionStore()


@pytest.fixture
def coordinator(transcription, translation, store) -> StreamingCoordinator:
  return StreamingCoordinator(transcription, translation, store, StreamingConfig())


@pytest.fixture
def sink() -> RecordingSink:
  return RecordingSink()
