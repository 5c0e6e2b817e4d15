"""
Listener for the caption channel.

Accepts websocket connections and hands each one to the streaming coordinator, keeping
handshake noise and abrupt disconnects out of the error log.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed, InvalidMessage

from polycaption.common import Seconds, get_logger

type ConnectionHandler = Callable[[ServerConnection], Awaitable[None]]


class WebSocketConnectionRegistry:
  """Open caption channel connections, keyed by connection id, with their opening time."""

  def __init__(self):
    self.opened_at: dict[str, float] = {}
    self.logger = get_logger("ws/registry")

  def __len__(self) -> int:
    return len(self.opened_at)

  def add(self, connection_id: str) -> None:
    self.opened_at[connection_id] = time.monotonic()
    self.logger.debug("Connection registered", open_connections=len(self))

  def remove(self, connection_id: str) -> None:
    opened = self.opened_at.pop(connection_id, None)
    if opened is not None:
      self.logger.debug(
        "Connection released",
        lifetime=Seconds(time.monotonic() - opened),
        open_connections=len(self),
      )


class WebSocketServer:
  """Serves the caption channel until cancelled. One misbehaving client never stops it."""

  def __init__(self, handler: ConnectionHandler, host: str, port: int, **serve_kwargs):
    self.handler = handler
    self.host = host
    self.port = port
    self.serve_kwargs = serve_kwargs
    self.registry = WebSocketConnectionRegistry()
    self.logger = get_logger("ws/server")

  async def start(self) -> None:
    async with serve(self.guarded_handler, self.host, self.port, **self.serve_kwargs):
      self.logger.info("Caption channel listening", host=self.host, port=self.port)
      await asyncio.get_running_loop().create_future()

  async def guarded_handler(self, websocket: ServerConnection) -> None:
    connection_id = str(websocket.id)
    logger = self.logger.bind(connection=connection_id)
    self.registry.add(connection_id)
    logger.info("Client connected", address=websocket.remote_address)

    try:
      await self.handler(websocket)
    except (EOFError, InvalidMessage):
      # Port scans and health checks that never finish the handshake
      logger.debug("Handshake abandoned")
    except ConnectionClosed as e:
      logger.debug("Client went away", code=e.rcvd.code if e.rcvd else None)
    except Exception:
      logger.exception("Unhandled error on caption connection")
    finally:
      self.registry.remove(connection_id)
