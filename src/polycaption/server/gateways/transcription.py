"""
Remote speech-to-text gateway.

Talks to an OpenAI-compatible `/audio/transcriptions` endpoint (Lemonfox by default) using
multipart uploads, and normalizes the engine's response into a `TranscriptionResult`.
"""

import time

import aiohttp

from polycaption.common import Pretty, elapsed_ms, get_logger
from polycaption.server.config import ResponseFormat, TranscriptionEngineConfig
from polycaption.server.errors import TranscriptionFailure
from polycaption.server.gateways.interfaces import (
  TranscriptionOptions,
  TranscriptionResult,
  TranscriptSegment,
)
from polycaption.server.gateways.languages import to_engine_code

_PLAIN_TEXT_FORMATS = ("text", "srt", "vtt")


def build_form_fields(options: TranscriptionOptions) -> list[tuple[str, str]]:
  """
  Build the non-file form fields for a transcription request.

  The language is omitted entirely for "auto", since the engine does not accept it as a code.
  """
  fields: list[tuple[str, str]] = []

  language_code = to_engine_code(options.language)
  if language_code is not None:
    fields.append(("language", language_code))

  if options.response_format is not None:
    fields.append(("response_format", options.response_format))

  if options.speaker_labels:
    fields.append(("speaker_labels", "true"))
    if options.min_speakers:
      fields.append(("min_speakers", str(options.min_speakers)))
    if options.max_speakers:
      fields.append(("max_speakers", str(options.max_speakers)))

  if options.prompt:
    fields.append(("prompt", options.prompt))

  return fields


def parse_transcription_response(
  payload: object, response_format: ResponseFormat
) -> TranscriptionResult:
  """
  Normalize an engine response body.

  Segments are only kept for `verbose_json`; other formats yield text alone.

  :raises TranscriptionFailure: If the body lacks a transcript.
  """
  if isinstance(payload, str):
    return TranscriptionResult(text=payload.strip())

  if not isinstance(payload, dict) or not isinstance(payload.get("text"), str):
    raise TranscriptionFailure("Malformed response from transcription engine")

  if response_format != "verbose_json":
    return TranscriptionResult(text=payload["text"].strip())

  segments = None
  raw_segments = payload.get("segments")
  if isinstance(raw_segments, list):
    try:
      segments = [
        TranscriptSegment(
          text=segment["text"],
          start=segment["start"],
          end=segment["end"],
          speaker=segment.get("speaker"),
        )
        for segment in raw_segments
      ]
    except (KeyError, TypeError, ValueError) as e:
      raise TranscriptionFailure(f"Malformed segment in transcription response: {e}") from e

  duration = payload.get("duration")
  return TranscriptionResult(
    text=payload["text"].strip(),
    duration=float(duration) if isinstance(duration, int | float) else None,
    segments=segments,
  )


def audio_form(audio: bytes) -> aiohttp.FormData:
  form = aiohttp.FormData()
  form.add_field("file", audio, filename="audio", content_type="application/octet-stream")
  return form


class LemonfoxTranscriptionGateway:
  """HTTP implementation of the TranscriptionGateway protocol. Holds no per-call state."""

  def __init__(self, config: TranscriptionEngineConfig) -> None:
    self.config = config
    self.logger = get_logger("gw/stt")

  @property
  def configured(self) -> bool:
    return bool(self.config.api_key)

  async def transcribe(self, audio: bytes, options: TranscriptionOptions) -> TranscriptionResult:
    return await self._post(audio_form(audio), self._batch(options))

  async def transcribe_stream(
    self, audio: bytes, options: TranscriptionOptions
  ) -> TranscriptionResult:
    return await self._post(
      audio_form(audio), self._with_format(options, self.config.streaming_response_format)
    )

  async def transcribe_url(self, url: str, options: TranscriptionOptions) -> TranscriptionResult:
    form = aiohttp.FormData()
    form.add_field("file", url)
    return await self._post(form, self._batch(options))

  def _batch(self, options: TranscriptionOptions) -> TranscriptionOptions:
    if options.response_format is not None:
      return options
    return self._with_format(options, self.config.batch_response_format)

  @staticmethod
  def _with_format(
    options: TranscriptionOptions, response_format: ResponseFormat
  ) -> TranscriptionOptions:
    return options.model_copy(update={"response_format": response_format})

  async def _post(self, form: aiohttp.FormData, options: TranscriptionOptions) -> TranscriptionResult:
    if not self.config.api_key:
      raise TranscriptionFailure("Transcription API key is not configured")

    fields = build_form_fields(options)
    for name, value in fields:
      form.add_field(name, value)

    url = f"{self.config.base_url.rstrip('/')}/audio/transcriptions"
    headers = {"Authorization": f"Bearer {self.config.api_key}"}
    timeout = aiohttp.ClientTimeout(total=self.config.timeout)
    started = time.perf_counter()
    self.logger.debug("Sending transcription request", fields=Pretty(dict(fields)))

    try:
      async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.post(url, headers=headers, data=form) as response:
          if not 200 <= response.status < 300:
            error_text = await response.text()
            raise TranscriptionFailure(
              error_text or response.reason or "request rejected", status_code=response.status
            )

          if options.response_format in _PLAIN_TEXT_FORMATS:
            payload: object = await response.text()
          else:
            payload = await response.json(content_type=None)

    except TimeoutError as e:
      raise TranscriptionFailure(f"Request timed out after {self.config.timeout}s") from e
    except aiohttp.ClientError as e:
      raise TranscriptionFailure(f"Could not reach transcription engine: {e}") from e
    except ValueError as e:
      raise TranscriptionFailure("Transcription engine returned invalid JSON") from e

    result = parse_transcription_response(payload, options.response_format)
    self.logger.debug(
      "Transcription complete",
      latency=elapsed_ms(started),
      chars=len(result.text),
      duration=result.duration,
    )
    return result
