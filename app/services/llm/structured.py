from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from typing import Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from app.services.llm.interface import LLMCallError, LLMClient, LLMSchemaError, Message

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

_JSON_BLOCK = re.compile(r"(\{.*\}|\[.*\])", re.DOTALL)
_SUSPICIOUS_PATTERNS = [
    r"ignore previous instructions",
    r"system prompt",
    r"you are now",
    r"new task:",
    r"assistant:",
    r"user:",
    r"<system>",
    r"### system",
]


def extract_json(text: str):
    """Pull the JSON document out of a model reply, tolerating fences and chatter."""
    match = _JSON_BLOCK.search(text or "")
    candidate = match.group(0) if match else text
    return json.loads(candidate)


def sanitize_input(text: Optional[str], max_length: int = 500) -> str:
    """Truncates user text and strips tag breakers when it looks like a prompt injection."""
    if not text:
        return ""

    text = text[:max_length]
    lowered = text.lower()
    if any(re.search(p, lowered) for p in _SUSPICIOUS_PATTERNS):
        logger.warning(f"Suspicious input detected: {text[:50]}...")
        text = re.sub(r"[<>{}/]", "", text)
    return text


class StructuredLLM:
    """
    Schema-validated generation on top of any LLMClient.

    ``generate`` performs exactly one provider call; retry policy belongs to
    the caller since it differs per pipeline stage.
    """

    def __init__(self, client: LLMClient, default_model: str, max_tokens: int = 1500):
        self.client = client
        self.default_model = default_model
        self.max_tokens = max_tokens

    async def generate(
        self,
        prompt: str,
        response_schema: Type[SchemaT],
        *,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        timeout_s: Optional[float] = None,
        temperature: float = 0.9,
        call_type: str = "generate",
    ) -> SchemaT:
        model = model or self.default_model
        start_time = time.time()
        try:
            response = await asyncio.wait_for(
                self.client.generate_text(
                    messages=[Message(role="user", content=prompt)],
                    model=model,
                    system_prompt=system_prompt,
                    max_tokens=self.max_tokens,
                    temperature=temperature,
                    json_mode=True,
                ),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise LLMCallError(f"{call_type}: model call timed out after {timeout_s}s") from exc
        except (httpx.HTTPError, ConnectionError) as exc:
            raise LLMCallError(f"{call_type}: transport error: {exc}") from exc
        except Exception as exc:
            # Provider SDK errors (rate limits, overload, 5xx) surface with SDK-specific types
            raise LLMCallError(f"{call_type}: provider error: {exc}") from exc

        latency_ms = int((time.time() - start_time) * 1000)
        logger.info("LLM %s model=%s latency_ms=%s usage=%s", call_type, model, latency_ms, response.usage)

        try:
            data = extract_json(response.content)
        except (json.JSONDecodeError, TypeError) as exc:
            logger.error(f"Failed to parse JSON from response: {(response.content or '')[:200]}... Error: {exc}")
            raise LLMSchemaError(f"{call_type}: reply is not JSON") from exc

        try:
            return response_schema.model_validate(data)
        except ValidationError as exc:
            raise LLMSchemaError(f"{call_type}: reply does not match {response_schema.__name__}: {exc}") from exc
