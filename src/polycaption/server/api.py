"""
Batch HTTP API: file and URL transcription, one-off translation, sessions and export.

The application is built by `create_app` around injected gateways and an injected store, so the
same instances are shared with the streaming coordinator.
"""

from datetime import UTC, datetime
from typing import Annotated
from urllib.parse import urlparse

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from polycaption.common import get_logger
from polycaption.server.config import StreamingConfig
from polycaption.server.errors import (
  InvalidStatusTransition,
  SessionCompletedError,
  TranscriptionFailure,
  TranslationFailure,
  UnknownSession,
)
from polycaption.server.export import ExportFormat, export_transcript
from polycaption.server.gateways import (
  TranscriptionGateway,
  TranscriptionOptions,
  TranscriptionResult,
  TranslationGateway,
)
from polycaption.server.storage import SessionStore
from polycaption.wire import CaptionEntry, NewCaptionEntry, Session, SessionUpdate, UserSettings
from polycaption.wire.captions import CamelModel

logger = get_logger("http")

_VIDEO_PLATFORM_HOSTS = ("youtube.com", "youtu.be")
_SOCIAL_MEDIA_HOSTS = ("tiktok.com", "instagram.com", "twitter.com", "x.com")


class CreateSessionRequest(CamelModel):
  source_language: str | None = None
  target_language: str | None = None
  title: str | None = None
  user_id: str | None = None


class TranscribeUrlRequest(CamelModel):
  url: str = ""
  language: str = "auto"
  speaker_labels: bool = False
  prompt: str | None = None


class TranslateRequest(CamelModel):
  text: str = ""
  source_language: str | None = None
  target_language: str = ""
  context: str | None = None


class TranslateResponse(CamelModel):
  translated_text: str
  source_language: str | None = None
  confidence: float | None = None


class StatusResponse(BaseModel):
  transcription: str
  translation: str
  timestamp: datetime


class UpdateSettingsRequest(BaseModel):
  settings: dict


def get_store(request: Request) -> SessionStore:
  return request.app.state.store


def get_transcription(request: Request) -> TranscriptionGateway:
  return request.app.state.transcription


def get_translation(request: Request) -> TranslationGateway:
  return request.app.state.translation


def get_streaming_config(request: Request) -> StreamingConfig:
  return request.app.state.streaming_config


Store = Annotated[SessionStore, Depends(get_store)]
Transcriber = Annotated[TranscriptionGateway, Depends(get_transcription)]
Translator = Annotated[TranslationGateway, Depends(get_translation)]
Defaults = Annotated[StreamingConfig, Depends(get_streaming_config)]


def rejected_url_reason(url: str) -> str | None:
  """Return why a media URL cannot be transcribed, or None if it looks usable."""
  parsed = urlparse(url)
  if parsed.scheme not in ("http", "https") or not parsed.hostname:
    return "Invalid URL format"

  host = parsed.hostname.lower()

  def matches(domains: tuple[str, ...]) -> bool:
    return any(host == domain or host.endswith(f".{domain}") for domain in domains)

  if matches(_VIDEO_PLATFORM_HOSTS):
    return (
      "YouTube URLs are not supported. Please use direct links to audio/video files "
      "(e.g., .mp3, .wav, .mp4)"
    )
  if matches(_SOCIAL_MEDIA_HOSTS):
    return (
      "Social media URLs are not supported. Please use direct links to audio/video files "
      "(e.g., .mp3, .wav, .mp4)"
    )
  return None


async def _require_session(store: SessionStore, session_id: str) -> Session:
  session = await store.get_session(session_id)
  if session is None:
    raise HTTPException(status_code=404, detail="Session not found")
  return session


def _install_error_handlers(app: FastAPI) -> None:
  @app.exception_handler(TranscriptionFailure)
  async def transcription_failure(_: Request, exc: TranscriptionFailure) -> JSONResponse:
    logger.warning("Transcription failed", error=str(exc), upstream_status=exc.status_code)
    upstream_client_error = exc.status_code is not None and 400 <= exc.status_code < 500
    status = 400 if upstream_client_error else 502
    return JSONResponse(status_code=status, content={"detail": str(exc)})

  @app.exception_handler(TranslationFailure)
  async def translation_failure(_: Request, exc: TranslationFailure) -> JSONResponse:
    logger.warning("Translation failed", error=str(exc))
    return JSONResponse(status_code=502, content={"detail": str(exc)})

  @app.exception_handler(UnknownSession)
  async def unknown_session(_: Request, exc: UnknownSession) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": exc.message})

  @app.exception_handler(SessionCompletedError)
  @app.exception_handler(InvalidStatusTransition)
  async def session_conflict(_: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def create_app(
  store: SessionStore,
  transcription: TranscriptionGateway,
  translation: TranslationGateway,
  streaming_config: StreamingConfig | None = None,
) -> FastAPI:
  """Build the HTTP application around already constructed collaborators."""
  app = FastAPI(title="polycaption")
  app.state.store = store
  app.state.transcription = transcription
  app.state.translation = translation
  app.state.streaming_config = streaming_config or StreamingConfig()
  _install_error_handlers(app)

  @app.get("/api/status", response_model=StatusResponse)
  async def status(transcriber: Transcriber, translator: Translator) -> StatusResponse:
    return StatusResponse(
      transcription="connected" if transcriber.configured else "disconnected",
      translation="connected" if translator.configured else "disconnected",
      timestamp=datetime.now(UTC),
    )

  @app.post(
    "/api/transcribe/file",
    response_model=TranscriptionResult,
    response_model_exclude_none=True,
  )
  async def transcribe_file(
    transcriber: Transcriber,
    audio: Annotated[UploadFile | None, File()] = None,
    language: Annotated[str, Form()] = "auto",
    speaker_labels: Annotated[bool, Form(alias="speakerLabels")] = False,
    min_speakers: Annotated[int | None, Form(alias="minSpeakers")] = None,
    max_speakers: Annotated[int | None, Form(alias="maxSpeakers")] = None,
    prompt: Annotated[str | None, Form()] = None,
  ) -> TranscriptionResult:
    if audio is None:
      raise HTTPException(status_code=400, detail="No audio file provided")

    data = await audio.read()
    logger.info("Transcribing uploaded file", filename=audio.filename, bytes=len(data))
    return await transcriber.transcribe(
      data,
      TranscriptionOptions(
        language=language,
        speaker_labels=speaker_labels,
        min_speakers=min_speakers,
        max_speakers=max_speakers,
        prompt=prompt,
      ),
    )

  @app.post(
    "/api/transcribe/url",
    response_model=TranscriptionResult,
    response_model_exclude_none=True,
  )
  async def transcribe_url(
    body: TranscribeUrlRequest, transcriber: Transcriber
  ) -> TranscriptionResult:
    if not body.url:
      raise HTTPException(status_code=400, detail="URL is required")
    reason = rejected_url_reason(body.url)
    if reason is not None:
      raise HTTPException(status_code=400, detail=reason)

    logger.info("Transcribing URL", url=body.url)
    return await transcriber.transcribe_url(
      body.url,
      TranscriptionOptions(
        language=body.language,
        speaker_labels=body.speaker_labels,
        prompt=body.prompt,
      ),
    )

  @app.post("/api/translate", response_model=TranslateResponse, response_model_exclude_none=True)
  async def translate(body: TranslateRequest, translator: Translator) -> TranslateResponse:
    if not body.text or not body.target_language:
      raise HTTPException(status_code=400, detail="Text and target language are required")

    result = await translator.translate(
      body.text, body.source_language, body.target_language, body.context
    )
    return TranslateResponse(
      translated_text=result.translated_text,
      source_language=result.detected_source_language or body.source_language,
      confidence=result.confidence,
    )

  @app.post("/api/sessions", response_model=Session)
  async def create_session(body: CreateSessionRequest, store: Store, defaults: Defaults) -> Session:
    user_settings = await store.get_user_settings(body.user_id) if body.user_id else None
    source_language = (
      body.source_language
      or (user_settings and user_settings.source_language)
      or defaults.default_source_language
    )
    target_language = (
      body.target_language
      or (user_settings and user_settings.target_language)
      or defaults.default_target_language
    )
    return await store.create_session(source_language, target_language, body.title, body.user_id)

  @app.get("/api/sessions", response_model=list[Session])
  async def list_sessions(
    store: Store, user_id: Annotated[str | None, Query(alias="userId")] = None
  ) -> list[Session]:
    return await store.list_sessions(user_id)

  @app.get("/api/sessions/{session_id}", response_model=Session)
  async def get_session(session_id: str, store: Store) -> Session:
    return await _require_session(store, session_id)

  @app.patch("/api/sessions/{session_id}", response_model=Session)
  async def update_session(session_id: str, body: SessionUpdate, store: Store) -> Session:
    session = await store.update_session(session_id, body)
    if session is None:
      raise HTTPException(status_code=404, detail="Session not found")
    return session

  @app.get("/api/sessions/{session_id}/entries", response_model=list[CaptionEntry])
  async def list_entries(session_id: str, store: Store) -> list[CaptionEntry]:
    await _require_session(store, session_id)
    return await store.list_entries(session_id)

  @app.post("/api/sessions/{session_id}/entries", response_model=CaptionEntry)
  async def add_entry(session_id: str, body: NewCaptionEntry, store: Store) -> CaptionEntry:
    session = await _require_session(store, session_id)
    if session.is_completed:
      raise HTTPException(status_code=409, detail="Session is completed")
    return await store.append_entry(session_id, body)

  @app.get("/api/sessions/{session_id}/export")
  async def export_session(
    session_id: str, store: Store, format_name: Annotated[str, Query(alias="format")] = "srt"
  ) -> Response:
    try:
      fmt = ExportFormat(format_name.lower())
    except ValueError:
      raise HTTPException(status_code=400, detail="Unsupported format") from None

    await _require_session(store, session_id)
    exported = export_transcript(await store.list_entries(session_id), fmt)
    return Response(
      content=exported.content,
      media_type=exported.media_type,
      headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )

  @app.get("/api/settings/{user_id}", response_model=UserSettings)
  async def get_settings(user_id: str, store: Store) -> UserSettings:
    settings = await store.get_user_settings(user_id)
    if settings is None:
      raise HTTPException(status_code=404, detail="Settings not found")
    return settings

  @app.put("/api/settings/{user_id}", response_model=UserSettings)
  async def update_settings(
    user_id: str, body: UpdateSettingsRequest, store: Store
  ) -> UserSettings:
    return await store.update_user_settings(user_id, body.settings)

  return app
