import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field


class Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Backend API
    api_base_url: str = Field(default="", alias="API_BASE_URL")
    request_timeout: float = Field(default=30.0, alias="API_REQUEST_TIMEOUT")

    # Response cache
    cache_ttl_seconds: float = Field(default=300.0, alias="API_CACHE_TTL")
    cache_max_size: int | None = Field(default=None, alias="API_CACHE_MAX_SIZE")
    cache_sweep_interval: float = Field(default=60.0, alias="API_CACHE_SWEEP_INTERVAL")

    debug: bool = Field(default=False, alias="API_DEBUG")


def load_settings() -> Settings:
    """Build settings from the environment, reading a .env file if present."""
    load_dotenv()
    return Settings.model_validate(dict(os.environ))
