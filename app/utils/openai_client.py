"""OpenAI API client — JSON-mode chat completions for structured extraction.

One call shape: system + user message, response_format=json_object, low
temperature, capped max_tokens. Failures raise ExtractionError so the call
site decides how to degrade; nothing here retries.

Usage:
    client = OpenAIClient(settings)
    data = await client.chat_json(
        "You extract property information. Return valid JSON only.",
        "Property: 123 Main St ...",
    )
"""

import json
from typing import Any

import httpx

from ..config import Settings
from ..logging_config import get_component_logger


class ExtractionError(Exception):
    """LLM call failed: network error, non-2xx status, or unparseable JSON."""


class OpenAIClient:
    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None, log=None):
        self.settings = settings
        self._client = client
        self.log = log or get_component_logger("openai")

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            from ..http_client import http

            self._client = http
        return self._client

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.settings.openai_api_key}",
            "Content-Type": "application/json",
        }

    async def chat_json(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 1000,
        temperature: float = 0.1,
        timeout: float = 60,
    ) -> dict:
        """Run one JSON-mode chat completion and return the parsed object.

        Raises:
            ExtractionError: on missing key, transport failure, non-2xx status,
                or a response that is not a JSON object.
        """
        if not self.settings.openai_api_key:
            raise ExtractionError("OpenAI API key not configured")

        body: dict[str, Any] = {
            "model": self.settings.openai_model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
            "response_format": {"type": "json_object"},
        }

        url = f"{self.settings.openai_api_base.rstrip('/')}/chat/completions"
        try:
            resp = await self.client.post(url, headers=self._headers(), json=body, timeout=timeout)
        except httpx.HTTPError as e:
            self.log.warning("openai_request_failed", error=str(e))
            raise ExtractionError(f"OpenAI request failed: {e}") from e

        if resp.status_code != 200:
            self.log.warning("openai_bad_status", status=resp.status_code, body=resp.text[:200])
            raise ExtractionError(f"OpenAI API error: {resp.status_code} - {resp.text[:200]}")

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ExtractionError(f"Malformed OpenAI response: {e}") from e

        parsed = safe_json_parse(content)
        if not isinstance(parsed, dict):
            self.log.warning("openai_unparseable", preview=(content or "")[:100])
            raise ExtractionError("OpenAI response was not a JSON object")
        return parsed


def safe_json_parse(text: str | None) -> dict | list | None:
    """Parse JSON from text that may contain markdown fences or preamble."""
    if not text:
        return None

    # Strip markdown code fences
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = [line for line in cleaned.split("\n") if not line.strip().startswith("```")]
        cleaned = "\n".join(lines).strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # Try to find JSON object or array in the text
    for start_char, end_char in [("{", "}"), ("[", "]")]:
        start = cleaned.find(start_char)
        end = cleaned.rfind(end_char)
        if start != -1 and end > start:
            try:
                return json.loads(cleaned[start : end + 1])
            except json.JSONDecodeError:
                continue

    return None
