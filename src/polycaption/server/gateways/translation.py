"""
Remote translation gateway backed by a chat-completion model.

The model is instructed to answer with a JSON object carrying `translation`,
`detected_language` and `confidence`; anything else is treated as a failure.
"""

import asyncio
import json
import time

import aiohttp

from polycaption.common import elapsed_ms, get_logger
from polycaption.server.config import TranslationEngineConfig
from polycaption.server.errors import TranslationFailure
from polycaption.server.gateways.interfaces import TranslationResult


def build_system_prompt(source_language: str | None, target_language: str) -> str:
  source = source_language or "the detected language"
  return f"""You are a professional translator specializing in real-time caption translation.
Your task is to translate text accurately while preserving the original meaning and context.

Instructions:
- Translate the provided text from {source} to {target_language}
- Maintain the original tone and style
- Preserve proper nouns, technical terms, and brand names
- For unclear or ambiguous text, provide the most likely translation
- If the text is already in {target_language}, return it unchanged
- Respond only with a JSON object of the following structure:
{{
  "translation": "translated text",
  "detected_language": "detected source language code",
  "confidence": 0.95
}}"""


def build_user_prompt(text: str, target_language: str, context: str | None = None) -> str:
  prompt = f'Translate this text to {target_language}: "{text}"'
  if context:
    prompt += f"\n\nContext: {context}"
  return prompt


def parse_translation_content(content: str | None) -> TranslationResult:
  """
  Parse the model's JSON answer.

  :raises TranslationFailure: If the content is not a JSON object with a string `translation`.
  """
  if not content:
    raise TranslationFailure("Empty response from translation engine")

  try:
    payload = json.loads(content)
  except json.JSONDecodeError as e:
    raise TranslationFailure(f"Translation response is not valid JSON: {e}") from e

  if not isinstance(payload, dict) or not isinstance(payload.get("translation"), str):
    raise TranslationFailure("Translation response is missing the 'translation' field")

  detected = payload.get("detected_language")
  confidence = payload.get("confidence")
  return TranslationResult(
    translated_text=payload["translation"],
    detected_source_language=detected if isinstance(detected, str) else None,
    confidence=float(confidence) if isinstance(confidence, int | float) else None,
  )


class OpenAITranslationGateway:
  """HTTP implementation of the TranslationGateway protocol."""

  def __init__(self, config: TranslationEngineConfig) -> None:
    self.config = config
    self.logger = get_logger("gw/mt")

  @property
  def configured(self) -> bool:
    return bool(self.config.api_key)

  async def translate(
    self,
    text: str,
    source_language: str | None,
    target_language: str,
    context: str | None = None,
  ) -> TranslationResult:
    if not self.config.api_key:
      raise TranslationFailure("Translation API key is not configured")

    url = f"{self.config.base_url.rstrip('/')}/chat/completions"
    headers = {
      "Authorization": f"Bearer {self.config.api_key}",
      "Content-Type": "application/json",
    }
    body = {
      "model": self.config.model,
      "messages": [
        {"role": "system", "content": build_system_prompt(source_language, target_language)},
        {"role": "user", "content": build_user_prompt(text, target_language, context)},
      ],
      "response_format": {"type": "json_object"},
      "temperature": self.config.temperature,
    }
    timeout = aiohttp.ClientTimeout(total=self.config.timeout)
    started = time.perf_counter()

    try:
      async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.post(url, headers=headers, json=body) as response:
          if not 200 <= response.status < 300:
            error_text = await response.text()
            raise TranslationFailure(f"Engine returned {response.status}: {error_text}")
          result = await response.json(content_type=None)

    except TimeoutError as e:
      raise TranslationFailure(f"Request timed out after {self.config.timeout}s") from e
    except aiohttp.ClientError as e:
      raise TranslationFailure(f"Could not reach translation engine: {e}") from e
    except ValueError as e:
      raise TranslationFailure("Translation engine returned invalid JSON") from e

    try:
      content = result["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
      raise TranslationFailure("Unexpected completion structure from translation engine") from e

    translation = parse_translation_content(content)
    self.logger.debug(
      "Translation complete",
      latency=elapsed_ms(started),
      target=target_language,
      detected=translation.detected_source_language,
    )
    return translation

  async def batch_translate(
    self,
    texts: list[str],
    source_language: str | None,
    target_language: str,
    context: str | None = None,
  ) -> list[TranslationResult]:
    return list(
      await asyncio.gather(
        *(self.translate(text, source_language, target_language, context) for text in texts)
      )
    )
