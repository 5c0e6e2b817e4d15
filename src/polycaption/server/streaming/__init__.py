"""
Streaming caption pipeline.

This package turns audio chunks arriving on caption channel connections into transcribed,
optionally translated and persisted caption entries.
"""

from polycaption.server.streaming.confidence import (
  ConfidenceEstimator,
  duration_confidence,
  get_estimator,
  no_confidence,
)
from polycaption.server.streaming.coordinator import (
  ConnectionContext,
  StreamingCoordinator,
  decode_audio,
  needs_translation,
)
from polycaption.server.streaming.interfaces import ChunkRoute, ResultSink
from polycaption.server.streaming.websocket_adapters import WebSocketResultSink

__all__ = [
  "ChunkRoute",
  "ConfidenceEstimator",
  "ConnectionContext",
  "ResultSink",
  "StreamingCoordinator",
  "WebSocketResultSink",
  "decode_audio",
  "duration_confidence",
  "get_estimator",
  "needs_translation",
  "no_confidence",
]
