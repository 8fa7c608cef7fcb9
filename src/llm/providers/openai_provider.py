from __future__ import annotations
import os
from typing import Optional

import httpx

from ai_todo.errors import ExtractionServiceError
from .base import LLMProvider


class OpenAIProvider(LLMProvider):
    """Chat-completions client for any OpenAI-compatible endpoint (Groq by default)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = (api_key or os.getenv("LLM_API_KEY") or os.getenv("GROQ_API_KEY", "")).strip()
        self.model = os.getenv("LLM_MODEL", "llama3-70b-8192").strip()
        self.base_url = os.getenv("LLM_BASE_URL", "https://api.groq.com/openai/v1").strip().rstrip("/")
        self.timeout_s = float(os.getenv("LLM_TIMEOUT_S", "30"))
        self._transport = transport

        if not self.api_key:
            raise RuntimeError("LLM_API_KEY (or GROQ_API_KEY) is missing")

    def generate(self, *, system: str, user: str) -> str:
        url = f"{self.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "temperature": 0,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        }

        try:
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                r = client.post(url, headers=headers, json=payload)
        except httpx.RequestError as e:
            raise ExtractionServiceError(f"LLM provider unreachable: {e}") from e

        if not r.is_success:
            raise ExtractionServiceError(
                f"LLM provider error {r.status_code}", status_code=r.status_code
            )

        try:
            data = r.json()
        except ValueError:
            # Treated like an empty completion; schema validation rejects it.
            return "{}"

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return "{}"
        return content if isinstance(content, str) else "{}"
