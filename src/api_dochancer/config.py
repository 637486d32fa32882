"""Configuration management for api-dochancer."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, read from ``DOCHANCER_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="DOCHANCER_", env_file=".env", extra="ignore")

    # LLM
    llm_model: str = "claude-sonnet-4-20250514"
    llm_api_key: str = ""

    # HTTP
    user_agent: str = "API-Dochancer/1.0"
    document_timeout: float = 30.0
    link_timeout: float = 15.0
    test_timeout: float = 10.0
    validation_timeout: float = 10.0

    # Parsing
    raw_content_limit: int = 10_000
    product_context_limit: int = 2_000

    # Output
    output_dir: str = "./generated"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()
