"""Tests for the caption channel message codec."""

import json

import pytest
from pydantic import ValidationError

from polycaption.wire import (
  AudioChunkMessage,
  ErrorMessage,
  TranscriptionResultMessage,
  deserialize_message,
  serialize_message,
)


class TestSerialize:
  def test_result_uses_camel_case(self):
    message = TranscriptionResultMessage(
      original_text="hello", translated_text="hola", timestamp=1000, speaker_label="A"
    )

    assert json.loads(serialize_message(message)) == {
      "type": "transcription_result",
      "originalText": "hello",
      "translatedText": "hola",
      "timestamp": 1000,
      "speakerLabel": "A",
    }

  def test_unset_optional_fields_are_omitted(self):
    message = TranscriptionResultMessage(original_text="hello", timestamp=0)
    payload = json.loads(serialize_message(message))

    assert "speakerLabel" not in payload
    assert payload["translatedText"] == ""

  def test_error(self):
    payload = json.loads(serialize_message(ErrorMessage(message="nope")))
    assert payload == {"type": "error", "message": "nope"}


class TestDeserialize:
  def test_audio_chunk(self):
    raw = json.dumps(
      {
        "type": "audio_chunk",
        "audio": "aGk=",
        "sessionId": "s1",
        "language": "spanish",
        "targetLanguage": "english",
        "speakerLabels": True,
        "speakerLabel": "B",
        "timestamp": 250,
      }
    )
    message = deserialize_message(raw)

    assert isinstance(message, AudioChunkMessage)
    assert message.session_id == "s1"
    assert message.language == "spanish"
    assert message.target_language == "english"
    assert message.speaker_labels is True
    assert message.speaker_label == "B"
    assert message.timestamp == 250

  def test_source_language_alias(self):
    message = deserialize_message('{"type": "audio_chunk", "audio": "aGk=", "sourceLanguage": "fr"}')
    assert message.language == "fr"

  def test_bytes_input(self):
    message = deserialize_message(b'{"type": "error", "message": "x"}')
    assert isinstance(message, ErrorMessage)

  def test_optional_fields_default_to_none(self):
    message = deserialize_message('{"type": "audio_chunk", "audio": "aGk="}')
    assert message.session_id is None
    assert message.language is None
    assert message.timestamp is None

  @pytest.mark.parametrize(
    "raw",
    [
      "not json",
      '{"type": "subscribe"}',
      '{"audio": "aGk="}',
      '{"type": "audio_chunk", "audio": "aGk=", "timestamp": -5}',
    ],
  )
  def test_invalid_messages(self, raw):
    with pytest.raises(ValidationError):
      deserialize_message(raw)
