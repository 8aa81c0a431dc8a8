from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    base_url: str = Field("http://localhost:3000", alias="BASE_URL")
    database_url: str = Field("sqlite+aiosqlite:///./gift_bundles.db", alias="DATABASE_URL")

    llm_provider: Optional[str] = Field(None, alias="LLM_PROVIDER")
    anthropic_api_key: Optional[str] = Field(None, alias="ANTHROPIC_API_KEY")
    openrouter_api_key: Optional[str] = Field(None, alias="OPENROUTER_API_KEY")
    llm_proxy_url: Optional[str] = Field(None, alias="LLM_PROXY_URL")

    google_search_api_key: Optional[str] = Field(None, alias="GOOGLE_SEARCH_API_KEY")
    google_search_engine_id: Optional[str] = Field(None, alias="GOOGLE_SEARCH_ENGINE_ID")
    google_search_best_seller: bool = Field(False, alias="GOOGLE_SEARCH_BEST_SELLER")
    amazon_associate_tag: str = Field("", alias="AMAZON_ASSOCIATE_TAG")
    etsy_api_key: Optional[str] = Field(None, alias="ETSY_API_KEY")

    internal_api_token: str = Field("default_internal_token", alias="INTERNAL_API_TOKEN")
    debug: bool = Field(False, alias="DEBUG")
    env: str = Field("prod", alias="ENV")
    cors_origins: str = Field("*", alias="CORS_ORIGINS")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
