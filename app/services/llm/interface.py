from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Message(BaseModel):
    role: str
    content: str


class LLMResponse(BaseModel):
    content: str
    raw_response: Any = None
    usage: Dict[str, int] = Field(default_factory=dict)


class LLMError(Exception):
    """Base class for language-model capability failures."""


class LLMCallError(LLMError):
    """Transient failure: timeout, transport error or provider error."""


class LLMSchemaError(LLMError):
    """The model answered, but not with a document matching the requested schema."""


class LLMClient(ABC):
    """One provider. Implementations make a single request per call and raise on failure."""

    @abstractmethod
    async def generate_text(
        self,
        messages: List[Message],
        model: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        stops: Optional[List[str]] = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        ...
