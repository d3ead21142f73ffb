"""Gemini REST client for structured JSON scoring."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from typing import Any, Optional, TypeVar

import httpx
import orjson
from pydantic import BaseModel, ValidationError

from urbanthread.config import Settings
from urbanthread.signals.http import request_with_retry


T = TypeVar("T", bound=BaseModel)


REPAIR_SUFFIX = (
    "\n\nIMPORTANT: Return ONLY a single JSON object. No markdown. No code fences. "
    "Do not add any extra keys. Ensure types and allowed values match the schema."
)


_FENCE = re.compile(r"^```[\w-]*\s*\n?(.*?)\n?```$", re.DOTALL)


def _response_text(payload: dict[str, Any]) -> str:
    candidates = payload.get("candidates") or [{}]
    parts = (candidates[0].get("content") or {}).get("parts") or []
    chunks = [part.get("text") for part in parts]
    text = "\n".join(chunk for chunk in chunks if isinstance(chunk, str) and chunk.strip())
    if not text:
        raise ValueError("Gemini response has no text")
    return text.strip()


def _json_object(text: str) -> str:
    """Return the outermost JSON object in model output, fenced or not."""
    body = text.strip()
    fenced = _FENCE.match(body)
    if fenced:
        body = fenced.group(1).strip()
    start, end = body.find("{"), body.rfind("}")
    if start < 0 or end <= start:
        raise ValueError("model output holds no JSON object")
    snippet = body[start : end + 1]
    try:
        orjson.loads(snippet)
    except orjson.JSONDecodeError as exc:
        raise ValueError("model output holds malformed JSON") from exc
    return snippet


@dataclass(frozen=True)
class GeminiResult:
    text: str
    latency_ms: int


class GeminiClient:
    """Minimal REST client for Gemini generateContent."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.settings = settings or Settings()
        if not self.settings.google_api_key:
            raise ValueError("GOOGLE_API_KEY must be set for text plausibility scoring")
        self._http_client = http_client

    def _request(self, prompt: str) -> GeminiResult:
        url = (
            f"{self.settings.gemini_api_base_url}/models/"
            f"{self.settings.gemini_model_id}:generateContent"
        )
        params = {"key": self.settings.google_api_key}
        body: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.settings.gemini_temperature,
                "maxOutputTokens": self.settings.gemini_max_output_tokens,
                "responseMimeType": "application/json",
            },
        }

        start = time.time()
        if self._http_client is not None:
            payload = self._post(self._http_client, url, params, body)
        else:
            with httpx.Client(timeout=self.settings.http_timeout_seconds) as client:
                payload = self._post(client, url, params, body)

        latency_ms = int((time.time() - start) * 1000)
        return GeminiResult(text=_response_text(payload), latency_ms=latency_ms)

    def _post(
        self,
        client: httpx.Client,
        url: str,
        params: dict[str, Any],
        body: dict[str, Any],
    ) -> dict[str, Any]:
        response = request_with_retry(
            client,
            "POST",
            url,
            params=params,
            json=body,
            retries=self.settings.http_max_retries,
        )
        response.raise_for_status()
        return response.json()

    def generate_structured(
        self, prompt: str, schema: type[T]
    ) -> tuple[Optional[T], int, int, str | None]:
        """Generate and validate structured JSON output.

        Returns (output, total_latency_ms, attempts, error_message).
        """
        total_latency = 0
        last_error: str | None = None
        attempts = max(1, self.settings.gemini_max_retries)

        for attempt in range(1, attempts + 1):
            suffix = "" if attempt == 1 else REPAIR_SUFFIX
            try:
                result = self._request(prompt + suffix)
                total_latency += result.latency_ms
                parsed = schema.model_validate_json(_json_object(result.text))
                return parsed, total_latency, attempt, None
            except (httpx.HTTPError, ValidationError, ValueError) as exc:
                last_error = str(exc)
                if attempt < attempts:
                    time.sleep(self.settings.gemini_sleep_seconds)
                continue

        return None, total_latency, attempts, last_error
