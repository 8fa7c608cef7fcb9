from __future__ import annotations
from abc import ABC, abstractmethod

class LLMProvider(ABC):
    @abstractmethod
    def generate(self, *, system: str, user: str) -> str:
        """
        Must return the model output as TEXT (JSON parsing/validation happens in LLMClient).
        Must raise ExtractionServiceError when the provider cannot be reached or refuses the call.
        """
        raise NotImplementedError
