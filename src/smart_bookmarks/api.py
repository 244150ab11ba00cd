"""LLM chat API client with optional caching."""

import hashlib
import json
import re
from pathlib import Path
from typing import Any

import requests
from loguru import logger

from smart_bookmarks.config import (
    API_CACHE_PREFIX,
    DEFAULT_BASE_URLS,
    REQUEST_TIMEOUT,
    ClassifierSettings,
)

MAX_TOKENS = 4096


class ChatApi:
    """Sends one prompt to an LLM provider and returns the reply text.

    ``anthropic`` uses the messages API; every other provider is treated as
    OpenAI-compatible chat completions.
    """

    def __init__(self, settings: ClassifierSettings, *, from_cache: bool = False) -> None:
        if not settings.api_key:
            msg = "No API key configured: set SMART_BOOKMARKS_API_KEY or write a key file"
            raise RuntimeError(msg)

        base_url = (settings.base_url or DEFAULT_BASE_URLS.get(settings.provider, "")).strip()
        if not base_url:
            msg = f"Provider {settings.provider!r} needs SMART_BOOKMARKS_BASE_URL"
            raise RuntimeError(msg)
        if not re.match(r"^https?://", base_url, flags=re.IGNORECASE):
            msg = f"API base URL must use http:// or https://, got {base_url!r}"
            raise ValueError(msg)

        self.settings = settings
        self.base_url = base_url.rstrip("/")
        self.from_cache = from_cache
        self.sess = requests.Session()

        self.api_cache_prefix: str | None = API_CACHE_PREFIX if from_cache else None
        if self.api_cache_prefix:
            Path(self.api_cache_prefix).parent.mkdir(parents=True, exist_ok=True)

        logger.debug(
            "API ready: provider {!r}, model {!r}, base {!r}, cache {!r}",
            settings.provider, settings.model, self.base_url, self.api_cache_prefix,
        )

    def _request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        if self.settings.provider == "anthropic":
            headers = {
                "x-api-key": self.settings.api_key or "",
                "anthropic-version": "2023-06-01",
                "content-type": "application/json",
            }
            body: dict[str, Any] = {
                "model": self.settings.model,
                "max_tokens": MAX_TOKENS,
                "messages": [{"role": "user", "content": prompt}],
            }
            return f"{self.base_url}/messages", headers, body

        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }
        body = {
            "model": self.settings.model,
            "temperature": 0.3,
            "max_tokens": MAX_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
        }
        return f"{self.base_url}/chat/completions", headers, body

    def _extract_text(self, rv: dict[str, Any]) -> str:
        if self.settings.provider == "anthropic":
            text = next(
                (c.get("text") for c in rv.get("content", []) if c.get("type") == "text"), None
            )
        else:
            choices = rv.get("choices") or [{}]
            text = (choices[0].get("message") or {}).get("content")
        if not text:
            msg = "Provider returned no text content"
            raise RuntimeError(msg)
        return str(text)

    def complete(self, prompt: str) -> str:
        """Send ``prompt`` and return the reply text."""
        url, headers, body = self._request(prompt)

        cache_name: str | None = None
        if self.api_cache_prefix:
            params_str = json.dumps(body, sort_keys=True, separators=(",", ":"))
            digest = hashlib.sha1(params_str.encode("utf-8")).hexdigest()
            cache_name = self.api_cache_prefix + digest
            if Path(cache_name).exists():
                logger.debug("Filled from cache: {!r}", cache_name)
                with open(cache_name, encoding="utf-8") as f:
                    return self._extract_text(json.load(f))

        logger.debug("Making request: {!r} ({} prompt chars)", url, len(prompt))
        r = self.sess.post(url, data=json.dumps(body), headers=headers, timeout=REQUEST_TIMEOUT)
        if not r.ok:
            msg = f"API request failed: {r.status_code} {_error_message(r)}"
            raise RuntimeError(msg)
        rv: dict[str, Any] = r.json()

        if cache_name:
            with open(cache_name, "w", encoding="utf-8") as f:
                f.write(r.text)

        return self._extract_text(rv)


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or "Unknown error"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(error or payload)
