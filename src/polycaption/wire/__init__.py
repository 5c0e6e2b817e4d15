"""
Polycaption wire protocol package.

Contains the message types and caption records used for communication between polycaption
clients and servers.
"""

from polycaption.wire.captions import (
  CaptionEntry,
  NewCaptionEntry,
  Session,
  SessionStatus,
  SessionUpdate,
  UserSettings,
)
from polycaption.wire.codec import Message, deserialize_message, serialize_message
from polycaption.wire.messages import (
  AudioChunkMessage,
  ErrorMessage,
  OutboundMessage,
  TranscriptionResultMessage,
)

__all__ = [
  "AudioChunkMessage",
  "CaptionEntry",
  "ErrorMessage",
  "Message",
  "NewCaptionEntry",
  "OutboundMessage",
  "Session",
  "SessionStatus",
  "SessionUpdate",
  "TranscriptionResultMessage",
  "UserSettings",
  "deserialize_message",
  "serialize_message",
]
