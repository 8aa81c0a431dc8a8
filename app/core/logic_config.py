import math
import os
import yaml
import logging
from typing import Dict, List
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class PipelineSettings(BaseModel):
    """Widths, budgets and timeouts of one bundle generation run."""

    concepts_count: int = Field(3, ge=1)
    queries_per_concept: int = Field(4, ge=1)
    max_products_before_llm: int = Field(12, ge=1)
    products_per_bundle: int = Field(10, ge=1)
    min_viable_fraction: float = Field(0.5, gt=0, le=1)

    search_concurrency: int = Field(4, ge=1)
    search_timeout_s: float = 10.0
    search_retries: int = Field(1, ge=0, le=1)
    expansion_concurrency: int = Field(3, ge=1)
    llm_timeout_s: float = 45.0
    llm_retries: int = Field(1, ge=0, le=1)
    sources: List[str] = Field(default_factory=lambda: ["amazon", "etsy"])

    slug_max_length: int = Field(60, ge=8)
    slug_max_attempts: int = Field(5, ge=1)

    # Title dedup: difflib ratio over normalized titles, plus max relative length gap
    title_similarity_threshold: float = Field(0.9, gt=0, le=1)
    title_length_tolerance: float = Field(0.2, ge=0, le=1)

    @property
    def min_viable_products(self) -> int:
        return max(1, math.ceil(self.products_per_bundle * self.min_viable_fraction))


class LLMSettings(BaseModel):
    default_provider: str = "anthropic"
    model_fast: str = "claude-3-haiku-20240307"
    model_smart: str = "claude-3-5-sonnet-20240620"
    openrouter_models: Dict[str, str] = Field(
        default_factory=lambda: {
            "claude-3-haiku-20240307": "anthropic/claude-3-haiku",
            "claude-3-5-sonnet-20240620": "anthropic/claude-3.5-sonnet",
        }
    )


class LogicConfig(BaseModel):
    """
    Centralized Business Logic Configuration.
    Loads from configs/logic.yaml with hierarchy:
    1. Static Defaults (in code)
    2. YAML file (configs/logic.yaml, or LOGIC_CONFIG_PATH)
    """
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)

    @classmethod
    def load(cls) -> "LogicConfig":
        config_path = os.environ.get("LOGIC_CONFIG_PATH", "configs/logic.yaml")

        if os.path.exists(config_path):
            try:
                with open(config_path, "r") as f:
                    config_dict = yaml.safe_load(f) or {}
                return cls.model_validate(config_dict)
            except Exception as e:
                logger.error(f"Failed to load logic config from {config_path}: {e}")

        logger.info(f"Using default logic configuration (file not found: {config_path})")
        return cls()


logic_config = LogicConfig.load()
