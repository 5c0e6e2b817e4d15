"""
Thin adapters to the external speech and translation engines.
"""

from polycaption.server.gateways.interfaces import (
  TranscriptionGateway,
  TranscriptionOptions,
  TranscriptionResult,
  TranscriptSegment,
  TranslationGateway,
  TranslationResult,
)
from polycaption.server.gateways.transcription import LemonfoxTranscriptionGateway
from polycaption.server.gateways.translation import OpenAITranslationGateway

__all__ = [
  "LemonfoxTranscriptionGateway",
  "OpenAITranslationGateway",
  "TranscriptionGateway",
  "TranscriptionOptions",
  "TranscriptionResult",
  "TranscriptSegment",
  "TranslationGateway",
  "TranslationResult",
]
