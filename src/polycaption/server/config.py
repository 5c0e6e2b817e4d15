import os
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator, validate_call
from pydantic.types import FilePath

from polycaption.common import get_logger

logger = get_logger("cfg")

ResponseFormat = Literal["json", "text", "srt", "verbose_json", "vtt"]


def _mask(secret: str | None) -> str:
  if not secret:
    return "<unset>"
  return f"{secret[:4]}…" if len(secret) > 8 else "****"


class ServerConfig(BaseModel):
  """Network listeners for the caption channel and the HTTP API."""

  host: str = "0.0.0.0"
  port: int = Field(default=9090, gt=0, le=65535)
  """WebSocket port for the streaming caption channel."""

  http_port: int = Field(default=8080, gt=0, le=65535)
  """Port for the batch HTTP API."""


class TranscriptionEngineConfig(BaseModel):
  """Connection settings for the remote speech-to-text engine."""

  base_url: str = "https://api.lemonfox.ai/v1"
  api_key: str | None = Field(default_factory=lambda: os.getenv("LEMONFOX_API_KEY"), repr=False)
  timeout: float = Field(default=60.0, gt=0.0)
  """Seconds before a transcription request is abandoned."""

  streaming_response_format: ResponseFormat = "json"
  """Cheapest structured format, used for live chunks."""

  batch_response_format: ResponseFormat = "verbose_json"
  """Format with per-segment timing, used for files and URLs."""


class TranslationEngineConfig(BaseModel):
  """Connection settings for the remote chat-completion model used for translation."""

  base_url: str = "https://api.openai.com/v1"
  api_key: str | None = Field(default_factory=lambda: os.getenv("OPENAI_API_KEY"), repr=False)
  model: str = "gpt-4o"
  temperature: float = Field(default=0.1, ge=0.0, le=2.0)
  timeout: float = Field(default=30.0, gt=0.0)


class StreamingConfig(BaseModel):
  """Defaults applied to audio chunks that do not carry their own routing fields."""

  default_source_language: str = "auto"
  default_target_language: str = "english"

  assumed_source_language: str = "english"
  """Language compared against the target when the source is "auto"."""

  speaker_labels: bool = False

  confidence: Literal["duration", "none"] = "duration"
  """How stored entries get a confidence value. "none" leaves it empty."""

  @field_validator("assumed_source_language")
  @classmethod
  def validate_assumed_source_language(cls, value: str) -> str:
    if value.strip().lower() == "auto":
      raise ValueError("assumed_source_language must name a concrete language, not 'auto'")
    return value


class PolycaptionConfig(BaseModel):
  """Top-level Polycaption configuration."""

  server: ServerConfig = Field(default_factory=ServerConfig)
  transcription: TranscriptionEngineConfig = Field(default_factory=TranscriptionEngineConfig)
  translation: TranslationEngineConfig = Field(default_factory=TranslationEngineConfig)
  streaming: StreamingConfig = Field(default_factory=StreamingConfig)

  def pretty_print(self) -> None:
    """Log every configuration property at INFO level, with API keys masked."""
    logger.info("=" * 60)
    logger.info("POLYCAPTION CONFIGURATION")
    logger.info("=" * 60)

    logger.info("SERVER SETTINGS:")
    logger.info(f"  Host: {self.server.host}")
    logger.info(f"  WebSocket Port: {self.server.port}")
    logger.info(f"  HTTP Port: {self.server.http_port}")

    logger.info("TRANSCRIPTION ENGINE:")
    logger.info(f"  Base URL: {self.transcription.base_url}")
    logger.info(f"  API Key: {_mask(self.transcription.api_key)}")
    logger.info(f"  Timeout: {self.transcription.timeout}s")
    logger.info(f"  Streaming Format: {self.transcription.streaming_response_format}")
    logger.info(f"  Batch Format: {self.transcription.batch_response_format}")

    logger.info("TRANSLATION ENGINE:")
    logger.info(f"  Base URL: {self.translation.base_url}")
    logger.info(f"  API Key: {_mask(self.translation.api_key)}")
    logger.info(f"  Model: {self.translation.model}")
    logger.info(f"  Temperature: {self.translation.temperature}")
    logger.info(f"  Timeout: {self.translation.timeout}s")

    logger.info("STREAMING DEFAULTS:")
    logger.info(f"  Source Language: {self.streaming.default_source_language}")
    logger.info(f"  Target Language: {self.streaming.default_target_language}")
    logger.info(f"  Assumed Source Language: {self.streaming.assumed_source_language}")
    logger.info(f"  Speaker Labels: {self.streaming.speaker_labels}")
    logger.info(f"  Confidence: {self.streaming.confidence}")

    logger.info("=" * 60)


@validate_call
def load_config_from_file(config_path: FilePath) -> PolycaptionConfig:
  """Load and validate Polycaption configuration from a YAML file."""

  logger.info("Loading Polycaption configuration", path=str(config_path))

  try:
    with open(config_path, "r", encoding="utf-8") as file:
      config_data = yaml.safe_load(file)

  except yaml.YAMLError as e:
    raise ValueError(f"Invalid YAML in configuration file: {e}") from e
  except OSError as e:
    raise ValueError(f"Error reading configuration file: {e}") from e

  # An empty file means "all defaults"
  if config_data is None:
    config_data = {}

  if not isinstance(config_data, dict):
    raise ValueError("Configuration file must contain a YAML dictionary")

  return PolycaptionConfig.model_validate(config_data)
