import logging
from typing import Dict, List, Optional

import httpx

from app.config import get_settings
from app.core.logic_config import logic_config
from app.services.llm.interface import LLMClient, Message, LLMResponse
from app.services.llm.proxy import build_async_client

logger = logging.getLogger(__name__)

OPENROUTER_API_BASE = "https://openrouter.ai/api/v1/chat/completions"


class OpenRouterClient(LLMClient):
    """
    OpenRouter gateway (OpenAI-compatible chat completions).

    Pipeline model names are Anthropic ids; ``llm.openrouter_models`` in
    logic.yaml maps them onto gateway ids, unknown names pass through.
    A single POST per call: stage code owns retries and timeouts.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_mapping: Optional[Dict[str, str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.api_key = api_key or settings.openrouter_api_key
        if not self.api_key:
            raise ValueError("OPENROUTER_API_KEY not configured")
        self.model_mapping = model_mapping if model_mapping is not None else logic_config.llm.openrouter_models
        self.referer = settings.base_url
        self.proxy_url = settings.llm_proxy_url
        self._http_client = http_client

    def _payload(
        self,
        messages: List[Message],
        model: str,
        system_prompt: Optional[str],
        max_tokens: int,
        temperature: float,
        stops: Optional[List[str]],
        json_mode: bool,
    ) -> dict:
        api_messages = [{"role": "system", "content": system_prompt}] if system_prompt else []
        api_messages.extend({"role": m.role, "content": m.content} for m in messages)

        payload = {
            "model": self.model_mapping.get(model, model),
            "messages": api_messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if stops:
            payload["stop"] = stops
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def _post(self, payload: dict) -> dict:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": self.referer,
            "X-Title": "Gift Bundles",
        }
        if self._http_client is not None:
            resp = await self._http_client.post(OPENROUTER_API_BASE, json=payload, headers=headers)
            resp.raise_for_status()
            return resp.json()

        async with build_async_client(self.proxy_url) as client:
            resp = await client.post(OPENROUTER_API_BASE, json=payload, headers=headers)
            resp.raise_for_status()
            return resp.json()

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
        payload = self._payload(messages, model, system_prompt, max_tokens, temperature, stops, json_mode)
        try:
            data = await self._post(payload)
        except httpx.HTTPStatusError as e:
            logger.warning(f"OpenRouter returned {e.response.status_code} for {payload['model']}")
            raise

        usage_data = data.get("usage") or {}
        return LLMResponse(
            content=data["choices"][0]["message"]["content"] or "",
            raw_response=data,
            usage={
                "input_tokens": usage_data.get("prompt_tokens", 0),
                "output_tokens": usage_data.get("completion_tokens", 0),
            },
        )
