from typing import Optional

from llm.llm_client import LLMClient
from llm.schemas import TaskCandidate


class TaskExtractor:

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self.llm_client = llm_client or LLMClient()

    def extract(self, text: str) -> TaskCandidate:
        return self.llm_client.extract_task(text)
