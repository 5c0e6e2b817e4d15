import asyncio

import uvicorn

from polycaption.common import get_logger
from polycaption.server.api import create_app
from polycaption.server.config import PolycaptionConfig
from polycaption.server.gateways import (
  LemonfoxTranscriptionGateway,
  OpenAITranslationGateway,
  TranscriptionGateway,
  TranslationGateway,
)
from polycaption.server.storage import InMemorySessionStore, SessionStore
from polycaption.server.streaming import StreamingCoordinator
from polycaption.server.websocket import WebSocketServer


class CaptionServer:
  """
  Runs the streaming caption channel and the batch HTTP API side by side.

  Both listeners share one store and one pair of gateways, so captions stored from a live stream
  are visible through the HTTP API straight away.
  """

  def __init__(
    self,
    config: PolycaptionConfig,
    store: SessionStore | None = None,
    transcription: TranscriptionGateway | None = None,
    translation: TranslationGateway | None = None,
  ):
    self.config = config
    self.store = store or InMemorySessionStore()
    self.transcription = transcription or LemonfoxTranscriptionGateway(config.transcription)
    self.translation = translation or OpenAITranslationGateway(config.translation)
    self.coordinator = StreamingCoordinator(
      self.transcription, self.translation, self.store, config.streaming
    )
    self.app = create_app(self.store, self.transcription, self.translation, config.streaming)
    self.logger = get_logger("server")

  async def run(self) -> None:
    server_config = self.config.server

    if not self.transcription.configured:
      self.logger.warning("No transcription API key configured; audio chunks will fail")
    if not self.translation.configured:
      self.logger.warning("No translation API key configured; translations will fail")

    websocket_server = WebSocketServer(
      self.coordinator.serve_connection,
      server_config.host,
      server_config.port,
      max_size=None,
    )
    http_server = uvicorn.Server(
      uvicorn.Config(
        self.app,
        host=server_config.host,
        port=server_config.http_port,
        log_config=None,
        access_log=False,
      )
    )

    websocket_task = asyncio.create_task(websocket_server.start(), name="websocket_server")
    http_task = asyncio.create_task(http_server.serve(), name="http_server")

    try:
      # uvicorn returns on SIGINT/SIGTERM; the websocket server only ever ends by failing
      done, _ = await asyncio.wait(
        (websocket_task, http_task), return_when=asyncio.FIRST_COMPLETED
      )
      for task in done:
        if not task.cancelled() and task.exception() is not None:
          self.logger.error(
            "Listener stopped with an error", listener=task.get_name(), error=task.exception()
          )
    except (KeyboardInterrupt, SystemExit):
      self.logger.info("Shutdown signal received")
    finally:
      http_server.should_exit = True
      websocket_task.cancel()
      await asyncio.gather(websocket_task, http_task, return_exceptions=True)

      self.logger.info("Waiting for in-flight chunks", inflight=self.coordinator.inflight_count)
      await self.coordinator.drain()
      self.logger.info("Server stopped")
