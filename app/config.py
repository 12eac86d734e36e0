"""All settings, loaded from the environment and the .env file."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # App
    app_url: str = "http://localhost:8000"
    database_url: str = "sqlite:///./properties.db"

    # AI extraction (required)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_api_base: str = "https://api.openai.com/v1"

    # Rendering service (required)
    browserless_token: str = ""
    browserless_ws_url: str = "wss://chrome.browserless.io"

    # Structured search (optional, degrades to scrape fallback)
    serp_api_key: str = ""

    # Address defaults for records without city/state
    default_city: str = "San Antonio"
    default_state: str = "TX"

    # Fetching
    direct_fetch_timeout: float = 15
    render_timeout: float = 30
    max_content_chars: int = 20_000
    min_content_chars: int = 500

    # Merge policy
    merge_confidence_floor: float = 0.6

    # Batch
    batch_default_limit: int = 5
    batch_max_limit: int = 50

    @property
    def enrichment_configured(self) -> bool:
        return bool(self.openai_api_key and self.browserless_token)

    @property
    def search_api_configured(self) -> bool:
        return bool(self.serp_api_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()
