from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    # Regeneration loop
    RNCP_MAX_ATTEMPTS: int = Field(3, ge=1)
    RNCP_DEFAULT_TEMPERATURE: float = Field(0.2)
    # Whole-request budget for the producer stage; 0 disables the timeout
    RNCP_REQUEST_TIMEOUT_SECONDS: float = Field(60.0, ge=0)
    # Registries rebuilt at process start; empty means start with none
    RNCP_CONTRACTS_FILE: str = Field("")
    RNCP_DATA_SOURCES_FILE: str = Field("")
    # Logging
    RNCP_LOG_LEVEL: str = Field("INFO")
    RNCP_LOG_DIR: str = Field("")
    # OpenAI-compatible producer
    OPENAI_API_KEY: str = Field("")
    OPENAI_BASE_URL: str = Field("https://api.openai.com/v1/chat/completions")
    OPENAI_MODEL: str = Field("gpt-4o-mini")
    PRODUCER_TIMEOUT_SECONDS: float = Field(30.0)
    PRODUCER_MAX_RETRIES: int = Field(2, ge=0)
    PRODUCER_MAX_TOKENS: int = Field(1024)
    # Prometheus exporter; 0 keeps it off
    METRICS_PORT: int = Field(0)

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
