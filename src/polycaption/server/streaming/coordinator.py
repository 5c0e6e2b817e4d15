"""
Streaming caption coordinator.

Receives audio chunks from caption channel connections and, for each chunk, drives the
transcription gateway, then (when the languages differ) the translation gateway, stores the
resulting entry and sends the caption back on the same connection.

Every chunk runs in its own task, so a slow engine round trip never holds up later chunks or
other connections. Results therefore go out in completion order; clients that need strict
ordering sort on `timestamp`.
"""

import asyncio
import base64
import binascii
import time
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError
from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed

from polycaption.common import elapsed_ms, get_logger
from polycaption.server.config import StreamingConfig
from polycaption.server.errors import InvalidAudioPayload, PolycaptionError, TranslationFailure
from polycaption.server.gateways import (
  TranscriptionGateway,
  TranscriptionOptions,
  TranslationGateway,
)
from polycaption.server.gateways.languages import is_auto
from polycaption.server.storage import SessionStore
from polycaption.server.streaming.confidence import ConfidenceEstimator, get_estimator
from polycaption.server.streaming.interfaces import ChunkRoute, ResultSink
from polycaption.server.streaming.websocket_adapters import WebSocketResultSink
from polycaption.wire import (
  AudioChunkMessage,
  ErrorMessage,
  NewCaptionEntry,
  TranscriptionResultMessage,
  deserialize_message,
)
from polycaption.wire.captions import now_ms


def decode_audio(payload: str) -> bytes:
  """
  Decode the base64 audio payload of a chunk.

  :raises InvalidAudioPayload: If the payload is not valid base64 or decodes to nothing.
  """
  try:
    audio = base64.b64decode(payload, validate=True)
  except (binascii.Error, ValueError) as e:
    raise InvalidAudioPayload(f"Audio payload is not valid base64: {e}") from e
  if not audio:
    raise InvalidAudioPayload("Audio payload is empty")
  return audio


def needs_translation(source_language: str, target_language: str, assumed_source: str) -> bool:
  """
  Whether a chunk must go through the translation engine.

  Compares the configured names exactly; an "auto" source stands for `assumed_source`.
  """
  if not target_language.strip():
    return False
  effective_source = assumed_source if is_auto(source_language) else source_language
  return target_language != effective_source


@dataclass
class ConnectionContext:
  """
  Per-connection defaults and bookkeeping.

  Every chunk is routed by its own fields; the defaults here only fill in what a chunk omits.
  Nothing a chunk carries is remembered for the chunks after it.
  """

  connection_id: str
  source_language: str
  target_language: str
  speaker_labels: bool
  sessions_seen: set[str] = field(default_factory=set)

  def route(self, message: AudioChunkMessage) -> ChunkRoute:
    if message.session_id is not None:
      self.sessions_seen.add(message.session_id)

    return ChunkRoute(
      session_id=message.session_id,
      source_language=(
        message.language if message.language is not None else self.source_language
      ),
      target_language=(
        message.target_language if message.target_language is not None else self.target_language
      ),
      speaker_labels=(
        message.speaker_labels if message.speaker_labels is not None else self.speaker_labels
      ),
      speaker_label=message.speaker_label,
      timestamp=message.timestamp if message.timestamp is not None else now_ms(),
    )


class StreamingCoordinator:
  """Process-wide coordinator shared by all caption channel connections."""

  def __init__(
    self,
    transcription: TranscriptionGateway,
    translation: TranslationGateway,
    store: SessionStore,
    config: StreamingConfig | None = None,
    confidence: ConfidenceEstimator | None = None,
  ) -> None:
    self.transcription = transcription
    self.translation = translation
    self.store = store
    self.config = config or StreamingConfig()
    self.confidence = confidence or get_estimator(self.config.confidence)
    self.logger = get_logger("stream/coord")
    self._inflight: set[asyncio.Task[Any]] = set()

  @property
  def inflight_count(self) -> int:
    return len(self._inflight)

  def new_context(self, connection_id: str) -> ConnectionContext:
    return ConnectionContext(
      connection_id=connection_id,
      source_language=self.config.default_source_language,
      target_language=self.config.default_target_language,
      speaker_labels=self.config.speaker_labels,
    )

  async def serve_connection(self, websocket: ServerConnection) -> None:
    """
    Read messages from an open connection until it closes.

    Chunk tasks that are still running when the connection closes are left to finish; their
    results are discarded by the sink.
    """
    connection_id = str(websocket.id)
    context = self.new_context(connection_id)
    sink = WebSocketResultSink(websocket, connection_id)
    logger = self.logger.bind(connection=connection_id)
    logger.info("Caption connection open")

    try:
      async for raw in websocket:
        self.dispatch(raw, context, sink)
    except ConnectionClosed:
      logger.debug("Connection closed while receiving")
    finally:
      sink.close()
      logger.info(
        "Caption connection closed",
        inflight=self.inflight_count,
        sessions=len(context.sessions_seen),
      )

  def dispatch(self, raw: str | bytes, context: ConnectionContext, sink: ResultSink) -> None:
    """Start handling one inbound frame without waiting for it."""
    self._spawn(self.handle_raw(raw, context, sink), context.connection_id)

  async def handle_raw(self, raw: str | bytes, context: ConnectionContext, sink: ResultSink) -> None:
    try:
      message = deserialize_message(raw)
    except ValidationError as e:
      self.logger.warning(
        "Rejected inbound message", connection=context.connection_id, errors=e.error_count()
      )
      await sink.send_error(f"Invalid message: {_first_error(e)}")
      return

    match message:
      case AudioChunkMessage():
        await self.process_chunk(message, context, sink)
      case TranscriptionResultMessage() | ErrorMessage():
        await sink.send_error(f"Unexpected message type '{message.type}'")

  async def process_chunk(
    self, message: AudioChunkMessage, context: ConnectionContext, sink: ResultSink
  ) -> None:
    """
    Run one chunk through transcription, translation and storage, then emit the caption.

    Any failure produces exactly one `error` message. A failed translation still lets the
    caption through, with an empty translation, after its `error` message.
    """
    route = context.route(message)
    logger = self.logger.bind(connection=context.connection_id, chunk_ts=route.timestamp)
    started = time.perf_counter()

    try:
      audio = decode_audio(message.audio)
      transcript = await self.transcription.transcribe_stream(
        audio,
        TranscriptionOptions(
          language=route.source_language,
          speaker_labels=route.speaker_labels,
        ),
      )
      original_text = transcript.text.strip()

      translated_text = ""
      if original_text:
        try:
          translated_text = await self._translate(original_text, route)
        except TranslationFailure as e:
          logger.warning("Translation failed, sending caption untranslated", error=str(e))
          await sink.send_error(str(e))

      if route.session_id and original_text:
        await self.store.append_entry(
          route.session_id,
          NewCaptionEntry(
            original_text=original_text,
            translated_text=translated_text or None,
            speaker_label=route.speaker_label,
            timestamp=route.timestamp,
            confidence=self.confidence(transcript),
          ),
        )

    except PolycaptionError as e:
      logger.warning("Audio chunk failed", error=str(e), bytes=len(message.audio))
      await sink.send_error(str(e))
      return
    except Exception:
      logger.exception("Unexpected error while processing audio chunk")
      await sink.send_error("Internal error while processing audio chunk")
      return

    logger.debug(
      "Audio chunk processed",
      latency=elapsed_ms(started),
      chars=len(original_text),
      translated=bool(translated_text),
    )
    await sink.send_result(
      TranscriptionResultMessage(
        original_text=original_text,
        translated_text=translated_text,
        timestamp=route.timestamp,
        speaker_label=route.speaker_label,
      )
    )

  async def _translate(self, text: str, route: ChunkRoute) -> str:
    if not needs_translation(
      route.source_language, route.target_language, self.config.assumed_source_language
    ):
      return ""

    source = None if is_auto(route.source_language) else route.source_language
    result = await self.translation.translate(text, source, route.target_language)
    return result.translated_text

  def _spawn(self, coro: Coroutine[Any, Any, None], connection_id: str) -> None:
    task = asyncio.create_task(coro, name=f"chunk/{connection_id[:8]}")
    self._inflight.add(task)
    task.add_done_callback(self._inflight.discard)

  async def drain(self) -> None:
    """Wait for every in-flight chunk task, including ones spawned while waiting."""
    while self._inflight:
      await asyncio.gather(*list(self._inflight), return_exceptions=True)


def _first_error(error: ValidationError) -> str:
  details = error.errors()
  if not details:
    return str(error)
  first = details[0]
  location = ".".join(str(part) for part in first.get("loc", ()))
  return f"{location}: {first['msg']}" if location else first["msg"]
