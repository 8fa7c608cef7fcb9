from __future__ import annotations
import json
import re

from llm.providers.base import LLMProvider

_WEEKDAY = re.compile(
    r"\b(?:next |this |on )?(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b"
    r"(?: at (?:noon|midnight|\d{1,2}(?::\d{2})?\s*(?:am|pm)?))?",
    re.IGNORECASE,
)
_RELATIVE = re.compile(r"\b(?:today|tomorrow|tonight)\b", re.IGNORECASE)
_WITH = re.compile(r"\bwith ([A-Z][a-z]+)")


class MockProvider(LLMProvider):
    def generate(self, *, system: str, user: str) -> str:
        """
        Returns a dummy extraction built from the quoted text in the prompt.
        Good enough for running the API without an API key.
        """
        m = re.search(r'"""(.*)"""', user, re.DOTALL)
        text = (m.group(1) if m else user).strip()

        due = _WEEKDAY.search(text) or _RELATIVE.search(text)
        title = text
        if due:
            title = (text[: due.start()] + text[due.end():]).strip(" ,.")

        return json.dumps({
            "title": title or text,
            "participants": _WITH.findall(text),
            "due_date_text": due.group(0) if due else None,
        })
