"""Tests for language resolution and transcription form fields."""

from polycaption.server.gateways import TranscriptionOptions
from polycaption.server.gateways.languages import is_auto, to_engine_code
from polycaption.server.gateways.transcription import build_form_fields


class TestLanguages:
  def test_is_auto(self):
    assert is_auto(None)
    assert is_auto("")
    assert is_auto("auto")
    assert is_auto(" AUTO ")
    assert not is_auto("english")

  def test_known_names_map_to_codes(self):
    assert to_engine_code("english") == "en"
    assert to_engine_code("Spanish") == "es"
    assert to_engine_code("chinese") == "zh"

  def test_unknown_names_pass_through(self):
    assert to_engine_code("klingon") == "klingon"
    assert to_engine_code("en") == "en"

  def test_auto_has_no_code(self):
    assert to_engine_code("auto") is None
    assert to_engine_code(None) is None


class TestBuildFormFields:
  def test_auto_omits_language(self):
    fields = dict(build_form_fields(TranscriptionOptions(language="auto", response_format="json")))

    assert "language" not in fields
    assert fields["response_format"] == "json"

  def test_language_is_mapped(self):
    fields = dict(build_form_fields(TranscriptionOptions(language="german")))
    assert fields["language"] == "de"

  def test_speaker_options(self):
    options = TranscriptionOptions(speaker_labels=True, min_speakers=2, max_speakers=4, prompt="hi")
    fields = dict(build_form_fields(options))

    assert fields["speaker_labels"] == "true"
    assert fields["min_speakers"] == "2"
    assert fields["max_speakers"] == "4"
    assert fields["prompt"] == "hi"

  def test_speaker_counts_ignored_without_labels(self):
    fields = dict(build_form_fields(TranscriptionOptions(min_speakers=2)))

    assert "speaker_labels" not in fields
    assert "min_speakers" not in fields
