"""
WebSocket implementation of the streaming ResultSink interface.
"""

from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed

from polycaption.common import get_logger
from polycaption.server.streaming.interfaces import ResultSink
from polycaption.wire import (
  ErrorMessage,
  OutboundMessage,
  TranscriptionResultMessage,
  serialize_message,
)


class WebSocketResultSink(ResultSink):
  """
  Sends caption results and errors to one WebSocket client as JSON text frames.

  Error Handling:
    - A closed connection turns every later send into a no-op (results of chunks still in
      flight when the client leaves are discarded, at most one delivery each)
    - Unexpected send errors are logged, never raised into the pipeline
  """

  def __init__(self, websocket: ServerConnection, connection_id: str) -> None:
    self.websocket = websocket
    self.connection_id = connection_id
    self.logger = get_logger("ws/sink").bind(connection=connection_id)
    self._closed = False

  @property
  def closed(self) -> bool:
    return self._closed

  async def send_result(self, result: TranscriptionResultMessage) -> None:
    await self.send_message(result)

  async def send_error(self, error: str) -> None:
    await self.send_message(ErrorMessage(message=error))

  def close(self) -> None:
    self._closed = True

  async def send_message(self, message: OutboundMessage) -> None:
    """Send a message to the WebSocket client, dropping it if the client is gone."""
    if self._closed:
      self.logger.debug("Dropping message for closed connection", type=message.type)
      return

    try:
      await self.websocket.send(serialize_message(message))
    except ConnectionClosed:
      self._closed = True
      self.logger.debug("Connection closed before message could be sent", type=message.type)
    except Exception:
      self.logger.exception("Error sending message to client")
