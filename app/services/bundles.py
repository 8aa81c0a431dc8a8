from __future__ import annotations

from typing import Optional

from app.core.logic_config import LogicConfig, logic_config
from app.repositories.bundles import BundleRepository
from app.services.llm.factory import LLMFactory
from app.services.llm.structured import StructuredLLM
from bundles.pipeline import GiftBundlePipeline
from integrations.marketplaces import MarketplaceSearch


def build_pipeline(repository: BundleRepository, config: Optional[LogicConfig] = None) -> GiftBundlePipeline:
    """Wires the pipeline with the configured LLM provider and marketplaces."""
    config = config or logic_config
    llm = StructuredLLM(LLMFactory.get_client(), default_model=config.llm.model_fast)
    search = MarketplaceSearch(timeout_s=config.pipeline.search_timeout_s)
    return GiftBundlePipeline(
        llm=llm,
        search=search,
        repository=repository,
        config=config.pipeline,
        model_fast=config.llm.model_fast,
        model_smart=config.llm.model_smart,
    )
