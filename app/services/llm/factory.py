import logging
from typing import Dict, Optional, Type

from app.config import get_settings
from app.core.logic_config import logic_config
from app.services.llm.interface import LLMClient
from app.services.llm.anthropic_client import AnthropicClient
from app.services.llm.openrouter_client import OpenRouterClient

logger = logging.getLogger(__name__)


class LLMFactory:
    """Picks the LLM provider for pipeline runs: anthropic or openrouter."""

    _clients: Dict[str, Type[LLMClient]] = {
        "anthropic": AnthropicClient,
        "openrouter": OpenRouterClient,
    }

    @staticmethod
    def resolve_provider(provider: Optional[str] = None) -> str:
        """Explicit argument, then LLM_PROVIDER, then logic.yaml."""
        settings = get_settings()
        name = (provider or settings.llm_provider or logic_config.llm.default_provider).lower()
        if name not in LLMFactory._clients:
            logger.warning(f"Unknown LLM provider '{name}', falling back to anthropic")
            name = "anthropic"
        # a deployment holding only an OpenRouter key still works with the default provider
        if name == "anthropic" and not settings.anthropic_api_key and settings.openrouter_api_key:
            logger.info("ANTHROPIC_API_KEY missing, using openrouter")
            name = "openrouter"
        return name

    @staticmethod
    def get_client(provider: Optional[str] = None) -> LLMClient:
        return LLMFactory._clients[LLMFactory.resolve_provider(provider)]()
