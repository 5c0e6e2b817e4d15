"""Tests for the client caption channel against a local websockets server."""

import asyncio
import json

import pytest
from websockets.asyncio.server import ServerConnection, serve

from polycaption.client import CaptionDeliveryChannel, ChannelConfig, ConnectionFailure
from polycaption.wire import AudioChunkMessage, ErrorMessage, TranscriptionResultMessage

FAST = ChannelConfig(connect_timeout=1.0, reconnect_delay=0.05)


class CaptionServerStub:
  """
  Accepts channel connections. `close_codes[i]` closes connection i right away with that code;
  connections past the list stay open, answering every frame with an error message.
  """

  def __init__(self):
    self.connections = 0
    self.close_codes: list[int] = []
    self.greeting: list[str] = []
    self.received: list[dict] = []
    self.url = ""

  async def handler(self, websocket: ServerConnection) -> None:
    index = self.connections
    self.connections += 1
    for frame in self.greeting:
      await websocket.send(frame)
    if index < len(self.close_codes):
      await websocket.close(code=self.close_codes[index])
      return
    async for raw in websocket:
      self.received.append(json.loads(raw))
      await websocket.send(json.dumps({"type": "error", "message": "ack"}))


@pytest.fixture
async def server():
  stub = CaptionServerStub()
  async with serve(stub.handler, "127.0.0.1", 0) as ws_server:
    port = ws_server.sockets[0].getsockname()[1]
    stub.url = f"ws://127.0.0.1:{port}"
    yield stub


async def wait_until(predicate, timeout: float = 2.0) -> None:
  async def poll():
    while not predicate():
      await asyncio.sleep(0.01)

  await asyncio.wait_for(poll(), timeout)


class TestConnect:
  async def test_connect_and_disconnect(self, server):
    states: list[bool] = []
    channel = CaptionDeliveryChannel(server.url, FAST)
    channel.on_state_change(states.append)

    await channel.connect()
    assert channel.is_connected()

    await channel.disconnect()
    assert not channel.is_connected()
    assert states == [True, False]

  async def test_connect_when_open_reuses_the_socket(self, server):
    channel = CaptionDeliveryChannel(server.url, FAST)

    async with channel:
      await channel.connect()
      assert channel.is_connected()

    assert server.connections == 1

  async def test_unreachable_server(self):
    channel = CaptionDeliveryChannel("ws://127.0.0.1:1", FAST)

    with pytest.raises(ConnectionFailure):
      await channel.connect()

  async def test_connect_timeout(self):
    async def never_opens(url):
      await asyncio.sleep(10)

    channel = CaptionDeliveryChannel(
      "ws://example.invalid", ChannelConfig(connect_timeout=0.05), connect_func=never_opens
    )

    with pytest.raises(ConnectionFailure, match="Timed out"):
      await channel.connect()

  async def test_context_manager(self, server):
    async with CaptionDeliveryChannel(server.url, FAST) as channel:
      assert channel.is_connected()
    assert not channel.is_connected()


class TestMessages:
  async def test_messages_delivered_in_order(self, server):
    server.greeting = [
      json.dumps({"type": "transcription_result", "originalText": f"line {i}", "timestamp": i})
      for i in range(3)
    ]
    received = []
    channel = CaptionDeliveryChannel(server.url, FAST)
    channel.on_message(received.append)

    async with channel:
      await wait_until(lambda: len(received) == 3)

    assert [m.original_text for m in received] == ["line 0", "line 1", "line 2"]
    assert all(isinstance(m, TranscriptionResultMessage) for m in received)

  async def test_every_handler_sees_each_message(self, server):
    first, second = [], []
    channel = CaptionDeliveryChannel(server.url, FAST)
    channel.on_message(first.append)
    channel.on_message(second.append)

    async with channel:
      await channel.send(AudioChunkMessage(audio="aGk=", session_id="s1", timestamp=0))
      await wait_until(lambda: len(first) == 1 and len(second) == 1)

    assert isinstance(first[0], ErrorMessage)
    assert server.received == [
      {"type": "audio_chunk", "audio": "aGk=", "sessionId": "s1", "timestamp": 0}
    ]

  async def test_undecodable_frames_are_skipped(self, server):
    server.greeting = ["{broken", json.dumps({"type": "error", "message": "ok"})]
    received = []
    channel = CaptionDeliveryChannel(server.url, FAST)
    channel.on_message(received.append)

    async with channel:
      await wait_until(lambda: len(received) == 1)

    assert received[0].message == "ok"

  async def test_disconnect_from_a_handler(self, server):
    server.greeting = [json.dumps({"type": "error", "message": "bye"})]
    channel = CaptionDeliveryChannel(server.url, FAST)
    handled = asyncio.Event()

    async def hang_up(message):
      await channel.disconnect()
      handled.set()

    channel.on_message(hang_up)
    await channel.connect()
    await asyncio.wait_for(handled.wait(), 2.0)
    await wait_until(lambda: not channel.is_connected())
    await asyncio.sleep(0.1)

    assert server.connections == 1
    assert channel.reconnect_count == 0

  async def test_send_when_disconnected_does_not_raise(self):
    channel = CaptionDeliveryChannel("ws://127.0.0.1:1", FAST)
    await channel.send(AudioChunkMessage(audio="aGk="))


class TestReconnect:
  async def test_abnormal_closure_reconnects_once(self, server):
    server.close_codes = [1011]
    channel = CaptionDeliveryChannel(server.url, FAST)

    await channel.connect()
    await wait_until(lambda: server.connections == 2 and channel.is_connected())
    await asyncio.sleep(0.2)

    assert server.connections == 2
    assert channel.reconnect_count == 1
    await channel.disconnect()

  async def test_normal_closure_does_not_reconnect(self, server):
    server.close_codes = [1000]
    channel = CaptionDeliveryChannel(server.url, FAST)

    await channel.connect()
    await wait_until(lambda: not channel.is_connected())
    await asyncio.sleep(0.2)

    assert server.connections == 1
    assert channel.reconnect_count == 0

  async def test_disconnect_never_reconnects(self, server):
    channel = CaptionDeliveryChannel(server.url, FAST)

    await channel.connect()
    await channel.disconnect()
    await asyncio.sleep(0.2)

    assert server.connections == 1
    assert channel.reconnect_count == 0

  async def test_disconnect_cancels_pending_reconnect(self, server):
    server.close_codes = [1011]
    channel = CaptionDeliveryChannel(
      server.url, ChannelConfig(connect_timeout=1.0, reconnect_delay=0.5)
    )

    await channel.connect()
    await wait_until(lambda: not channel.is_connected())
    await channel.disconnect()
    await asyncio.sleep(0.7)

    assert server.connections == 1
    assert channel.reconnect_count == 0

  async def test_auto_reconnect_disabled(self, server):
    server.close_codes = [1011]
    channel = CaptionDeliveryChannel(
      server.url, ChannelConfig(reconnect_delay=0.05, auto_reconnect=False)
    )

    await channel.connect()
    await wait_until(lambda: not channel.is_connected())
    await asyncio.sleep(0.2)

    assert server.connections == 1

  async def test_manual_connect_replaces_pending_reconnect(self, server):
    server.close_codes = [1011]
    channel = CaptionDeliveryChannel(
      server.url, ChannelConfig(connect_timeout=1.0, reconnect_delay=0.3)
    )

    await channel.connect()
    await wait_until(lambda: not channel.is_connected())
    await channel.connect()
    await asyncio.sleep(0.6)

    assert channel.is_connected()
    assert server.connections == 2
    assert channel.reconnect_count == 0
    await channel.disconnect()
