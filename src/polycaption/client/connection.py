"""
Caption channel connection for polycaption clients.

Wraps a websocket to the caption server: typed send/receive, state notifications and automatic
reconnection after abnormal closures.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from polycaption.common import get_logger
from polycaption.wire import Message, deserialize_message, serialize_message

NORMAL_CLOSURE = 1000

type MessageHandler = Callable[[Message], Awaitable[None] | None]
type StateHandler = Callable[[bool], Awaitable[None] | None]


class ConnectionFailure(Exception):
  """The caption channel could not be opened."""


class ChannelConfig(BaseModel):
  connect_timeout: float = Field(default=5.0, gt=0.0)
  """Seconds to wait for the opening handshake."""

  reconnect_delay: float = Field(default=3.0, ge=0.0)
  """Seconds between an abnormal closure (or a failed retry) and the next attempt."""

  auto_reconnect: bool = True


class CaptionDeliveryChannel:
  """
  Duplex message channel between a capture client and the caption server.

  Inbound messages are decoded and handed to every registered handler in receipt order.
  A closure with any code other than 1000 schedules a reconnect unless `disconnect()` caused it.
  """

  def __init__(
    self,
    url: str,
    config: ChannelConfig | None = None,
    connect_func: Callable[..., Any] = connect,
  ):
    self.url = url
    self.config = config or ChannelConfig()
    self._connect_func = connect_func
    self._ws: ClientConnection | None = None
    self._reader: asyncio.Task[None] | None = None
    self._reconnect_task: asyncio.Task[None] | None = None
    self._closing = False
    self._open_lock = asyncio.Lock()
    self._message_handlers: list[MessageHandler] = []
    self._state_handlers: list[StateHandler] = []
    self.reconnect_count = 0
    self.logger = get_logger("client/channel")

  def on_message(self, handler: MessageHandler) -> None:
    self._message_handlers.append(handler)

  def on_state_change(self, handler: StateHandler) -> None:
    """Register a callback receiving True when the channel opens and False when it drops."""
    self._state_handlers.append(handler)

  def is_connected(self) -> bool:
    return self._ws is not None and self._ws.state is State.OPEN

  async def connect(self) -> None:
    """
    Open the channel.

    :raises ConnectionFailure: If the server is unreachable, refuses the handshake or does not
      answer within `connect_timeout`.
    """
    if self.is_connected():
      return
    self._closing = False
    # A manual connect replaces any scheduled retry
    await self._cancel_reconnect()
    async with self._open_lock:
      if not self.is_connected():
        await self._open()

  async def _open(self) -> None:
    try:
      ws = await asyncio.wait_for(self._connect_func(self.url), self.config.connect_timeout)
    except TimeoutError as e:
      raise ConnectionFailure(
        f"Timed out connecting to {self.url} after {self.config.connect_timeout}s"
      ) from e
    except (OSError, WebSocketException) as e:
      raise ConnectionFailure(f"Could not connect to {self.url}: {e}") from e

    self._ws = ws
    self._reader = asyncio.create_task(self._read_loop(ws), name="channel_reader")
    self.logger.info("Caption channel connected", url=self.url)
    await self._notify_state(True)

  async def send(self, message: Message) -> None:
    """Send a message. Drops it with a warning when the channel is not open."""
    if not self.is_connected():
      self.logger.warning("Caption channel not connected; dropping message", type=message.type)
      return

    try:
      await self._ws.send(serialize_message(message))
    except ConnectionClosed:
      self.logger.warning("Caption channel closed while sending", type=message.type)

  async def disconnect(self) -> None:
    """Close with code 1000 and stop any pending or future reconnect."""
    self._closing = True
    await self._cancel_reconnect()

    if self._ws is not None:
      await self._ws.close(code=NORMAL_CLOSURE)

    reader, self._reader = self._reader, None
    # From inside a message handler the reader finishes on its own once the handler returns
    if reader is not None and reader is not asyncio.current_task():
      await reader

  async def _cancel_reconnect(self) -> None:
    task, self._reconnect_task = self._reconnect_task, None
    if task is None or task is asyncio.current_task():
      return
    task.cancel()
    try:
      await task
    except asyncio.CancelledError:
      pass

  async def __aenter__(self) -> "CaptionDeliveryChannel":
    await self.connect()
    return self

  async def __aexit__(self, exc_type, exc, tb) -> None:
    await self.disconnect()

  async def _read_loop(self, ws: ClientConnection) -> None:
    try:
      async for raw in ws:
        try:
          message = deserialize_message(raw)
        except ValidationError as e:
          self.logger.warning("Ignoring undecodable message", errors=e.error_count())
          continue
        await self._deliver(message)
    except ConnectionClosed:
      pass

    close_code = ws.close_code
    superseded = self._ws is not None and self._ws is not ws
    if not superseded:
      self._ws = None
    self.logger.info("Caption channel closed", code=close_code, requested=self._closing)
    if superseded:
      return
    await self._notify_state(False)

    if self._closing or close_code == NORMAL_CLOSURE or not self.config.auto_reconnect:
      return
    self._reconnect_task = asyncio.create_task(self._reconnect_loop(), name="channel_reconnect")

  async def _reconnect_loop(self) -> None:
    while not self._closing:
      await asyncio.sleep(self.config.reconnect_delay)
      if self._closing:
        return
      self.reconnect_count += 1
      self.logger.info("Reconnecting caption channel", attempt=self.reconnect_count)
      try:
        async with self._open_lock:
          if not self.is_connected():
            await self._open()
      except ConnectionFailure as e:
        self.logger.warning("Reconnect failed", error=str(e))
        continue
      self._reconnect_task = None
      return

  async def _deliver(self, message: Message) -> None:
    for handler in list(self._message_handlers):
      try:
        result = handler(message)
        if inspect.isawaitable(result):
          await result
      except Exception:
        self.logger.exception("Message handler failed", type=message.type)

  async def _notify_state(self, connected: bool) -> None:
    for handler in list(self._state_handlers):
      try:
        result = handler(connected)
        if inspect.isawaitable(result):
          await result
      except Exception:
        self.logger.exception("State handler failed", connected=connected)
