"""Mapping from the language names used by clients to the codes the engines expect."""

AUTO_DETECT = "auto"

LANGUAGE_CODES: dict[str, str] = {
  "arabic": "ar",
  "chinese": "zh",
  "czech": "cs",
  "danish": "da",
  "dutch": "nl",
  "english": "en",
  "finnish": "fi",
  "french": "fr",
  "german": "de",
  "greek": "el",
  "hebrew": "he",
  "hindi": "hi",
  "hungarian": "hu",
  "indonesian": "id",
  "italian": "it",
  "japanese": "ja",
  "korean": "ko",
  "norwegian": "no",
  "polish": "pl",
  "portuguese": "pt",
  "romanian": "ro",
  "russian": "ru",
  "spanish": "es",
  "swedish": "sv",
  "thai": "th",
  "turkish": "tr",
  "ukrainian": "uk",
  "vietnamese": "vi",
}


def is_auto(language: str | None) -> bool:
  """True when no concrete language was requested."""
  return language is None or not language.strip() or language.strip().lower() == AUTO_DETECT


def to_engine_code(language: str | None) -> str | None:
  """
  Resolve a language name to the engine's code.

  Returns None for "auto" (or nothing), meaning the field must be omitted from the request.
  Names missing from the table are passed through unchanged so new engine languages keep
  working.
  """
  if language is None or is_auto(language):
    return None
  return LANGUAGE_CODES.get(language.strip().lower(), language)
