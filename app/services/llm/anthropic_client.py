import logging
from typing import List, Optional

from anthropic import AsyncAnthropic

from app.config import get_settings
from app.services.llm.interface import LLMClient, Message, LLMResponse
from app.services.llm.proxy import build_async_client

logger = logging.getLogger(__name__)


class AnthropicClient(LLMClient):
    """Messages API adapter. JSON mode is emulated by prefilling the reply with ``{``."""

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncAnthropic] = None):
        if client is not None:
            self.client = client
            return

        settings = get_settings()
        api_key = api_key or settings.anthropic_api_key
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY not configured")
        http_client = build_async_client(settings.llm_proxy_url) if settings.llm_proxy_url else None
        # one attempt per call; stages retry
        self.client = AsyncAnthropic(api_key=api_key, http_client=http_client, max_retries=0)

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
        api_messages = [{"role": m.role, "content": m.content} for m in messages]
        if json_mode:
            api_messages.append({"role": "assistant", "content": "{"})

        kwargs = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": api_messages,
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        if stops:
            kwargs["stop_sequences"] = stops

        try:
            response = await self.client.messages.create(**kwargs)
        except Exception as e:
            logger.error(f"Anthropic call to {model} failed: {e}")
            raise

        text = "".join(block.text for block in response.content if getattr(block, "type", "text") == "text")
        return LLMResponse(
            content="{" + text if json_mode else text,
            raw_response=response,
            usage={
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
        )
