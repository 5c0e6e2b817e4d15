"""
Protocol interfaces for streaming caption components.

Defines the contract for delivering pipeline output back to a connected client, plus the
routing snapshot each audio chunk is processed with.
"""

from dataclasses import dataclass
from typing import Protocol

from polycaption.wire import TranscriptionResultMessage


@dataclass(frozen=True)
class ChunkRoute:
  """Routing parameters resolved for one audio chunk."""

  session_id: str | None
  source_language: str
  target_language: str
  speaker_labels: bool
  speaker_label: str | None
  timestamp: int
  """Chunk offset in milliseconds."""


class ResultSink(Protocol):
  """
  Protocol for caption outputs.

  Implementations must never raise from the send methods: a vanished client only means that
  the result is dropped.
  """

  async def send_result(self, result: TranscriptionResultMessage) -> None: ...

  async def send_error(self, error: str) -> None: ...

  def close(self) -> None:
    """Stop delivering; later sends are discarded."""
    ...
