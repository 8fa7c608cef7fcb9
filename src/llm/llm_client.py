import logging
import os
from typing import Optional

from llm.providers.base import LLMProvider
from llm.schemas import TaskCandidate, validate_candidate

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a precise information extractor."

EXTRACTION_PROMPT = '''Extract a task from the text. Return strict JSON ONLY in this format:
{{
  "title": string,
  "participants": string[],
  "due_date_text": string | null
}}

Rules:
- Title must be concise and descriptive.
- Participants must be human names or role labels.
- due_date_text must be the exact text of the date/time expression if one exists ("Tuesday", "August 20th", "tomorrow").
- If no date expression exists, use null.
- Do NOT convert relative dates into ISO. Just return the words found.

Text:
"""{text}"""'''


def build_provider() -> LLMProvider:
    """Pick the provider named by LLM_PROVIDER."""
    name = os.getenv("LLM_PROVIDER", "openai").strip().lower()
    if name == "mock":
        from llm.providers.mock_provider import MockProvider
        return MockProvider()
    if name in {"openai", "groq"}:
        from llm.providers.openai_provider import OpenAIProvider
        return OpenAIProvider()
    raise RuntimeError(f"Unknown LLM_PROVIDER: {name}")


class LLMClient:
    """Single-shot extraction client: one provider call, then schema validation.

    Errors from the provider (ExtractionServiceError) and from validation
    (ExtractionValidationError) are raised as-is; nothing is retried.
    """

    def __init__(self, provider: Optional[LLMProvider] = None):
        self._provider = provider

    @property
    def provider(self) -> LLMProvider:
        if self._provider is None:
            self._provider = build_provider()
        return self._provider

    def complete(self, text: str) -> str:
        """Raw model output for the extraction prompt."""
        return self.provider.generate(
            system=SYSTEM_PROMPT,
            user=EXTRACTION_PROMPT.format(text=text),
        )

    def extract_task(self, text: str) -> TaskCandidate:
        raw = self.complete(text)
        candidate = validate_candidate(raw)
        logger.info(f"Extracted task: {candidate.model_dump()}")
        return candidate
