"""HTTP transport for the OpenRouter chat completion and embedding APIs"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import requests

from .config import Settings
from .errors import UpstreamCallError
from .logger import get_logger

logger = get_logger("llm")

_RETRYABLE_STATUS = {408, 409, 429, 500, 502, 503, 504}


class OpenRouterClient:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        self.timeout_seconds = max(1.0, float(settings.request_timeout_seconds))
        self.max_retries = max(0, int(settings.max_retries))
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.settings.app_referer,
            "X-Title": self.settings.app_title,
        }

    def _redact(self, text: str) -> str:
        key = self.settings.api_key
        return text.replace(key, "***") if key else text

    def _backoff(self, attempt: int) -> None:
        delay = self.settings.retry_backoff_seconds * (2 ** attempt)
        if delay > 0:
            time.sleep(delay)

    def post_json(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST a JSON payload and return the decoded JSON object

        Raises UpstreamCallError for a missing key, transport errors, non 2xx answers
        and bodies that are not a JSON object
        """
        if not self.settings.has_api_key:
            raise UpstreamCallError("OPENROUTER_API_KEY is not configured")

        endpoint = f"{self.base_url}{path}"
        for attempt in range(self.max_retries + 1):
            try:
                response = self.session.post(
                    endpoint,
                    json=payload,
                    headers=self._headers(),
                    timeout=self.timeout_seconds,
                )
            except requests.RequestException as exc:
                if attempt < self.max_retries:
                    logger.warning(f"Request to {path} failed ({exc.__class__.__name__}), retrying")
                    self._backoff(attempt)
                    continue
                raise UpstreamCallError(f"Request to {path} failed: {exc.__class__.__name__}") from exc

            if response.status_code in _RETRYABLE_STATUS and attempt < self.max_retries:
                logger.warning(f"Request to {path} returned {response.status_code}, retrying")
                self._backoff(attempt)
                continue
            if not 200 <= response.status_code < 300:
                # Upstream error bodies are logged, never handed back to the caller
                logger.error(f"Request to {path} returned {response.status_code}: {self._redact(response.text[:500])}")
                raise UpstreamCallError(
                    f"Request to {path} returned HTTP {response.status_code}",
                    status_code=response.status_code,
                )
            try:
                data = response.json()
            except ValueError as exc:
                raise UpstreamCallError(f"Response from {path} is not JSON") from exc
            if not isinstance(data, dict):
                raise UpstreamCallError(f"Response from {path} is not a JSON object")
            return data

        raise UpstreamCallError(f"Request to {path} failed")

    def chat_completion(self, messages: List[Dict[str, str]], model: Optional[str] = None, temperature: Optional[float] = None) -> str:
        payload = {
            "model": model or self.settings.chat_model,
            "messages": messages,
            "temperature": self.settings.temperature if temperature is None else temperature,
        }
        data = self.post_json("/chat/completions", payload)
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamCallError("Chat completion envelope has no message content") from exc
        if not isinstance(content, str):
            raise UpstreamCallError("Chat completion message content is not text")
        return content.strip()

    def embeddings(self, text: str, model: Optional[str] = None) -> Dict[str, Any]:
        payload = {
            "model": model or self.settings.embedding_model,
            "input": text,
        }
        return self.post_json("/embeddings", payload)
