"""
Message codec for wire protocol serialization and deserialization.

Provides a small public API for converting between wire protocol message objects and JSON
strings, hiding the details of Pydantic serialization and camelCase aliasing.
"""

from typing import Annotated

from pydantic import Field, TypeAdapter

from polycaption.wire.messages import (
  AudioChunkMessage,
  ErrorMessage,
  TranscriptionResultMessage,
)

type Message = AudioChunkMessage | TranscriptionResultMessage | ErrorMessage

_message_adapter: TypeAdapter[Message] = TypeAdapter(
  Annotated[
    AudioChunkMessage | TranscriptionResultMessage | ErrorMessage,
    Field(discriminator="type"),
  ]
)


def serialize_message(message: Message) -> str:
  """
  Serialize a wire protocol message to a JSON string.

  :param message: Any wire protocol message instance
  :returns: JSON text with camelCase keys; unset optional fields are omitted
  """
  return message.model_dump_json(by_alias=True, exclude_none=True)


def deserialize_message(data: str | bytes) -> Message:
  """
  Deserialize JSON text to the wire protocol message named by its `type` field.

  :param data: JSON text or UTF-8 bytes containing the message
  :returns: Message instance of the appropriate type
  :raises pydantic.ValidationError: If the JSON is malformed, the type is unknown, or a field
      fails validation
  """
  return _message_adapter.validate_json(data)
