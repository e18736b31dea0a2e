from pydantic_settings import BaseSettings
from pydantic import AnyUrl
from functools import lru_cache


class Settings(BaseSettings):
    # core
    ENV: str = "dev"
    API_PREFIX: str = ""
    SERVICE_NAME: str = "apollo-service"

    # database & redis
    DATABASE_URL: AnyUrl
    # Keep this as a plain string so redis:// URLs are always accepted
    REDIS_URL: str

    # apollo
    APOLLO_BASE_URL: str = "https://api.apollo.io/api/v1"
    APOLLO_TIMEOUT_SECONDS: int = 30

    # key-service (BYOK + app keys)
    KEY_SERVICE_URL: str = "http://localhost:3001"
    KEY_SERVICE_API_KEY: str = ""
    KEY_SERVICE_TIMEOUT_SECONDS: int = 10

    # runs-service (cost tracking)
    RUNS_SERVICE_URL: str = "http://localhost:3006"
    RUNS_SERVICE_API_KEY: str = ""
    RUNS_SERVICE_TIMEOUT_SECONDS: int = 15

    # auth / security
    API_AUTH_KEY: str | None = None
    FRONTEND_ORIGIN: str | None = None
    # Explicit debug-only switch for wide-open CORS in non-prod envs
    CORS_ALLOW_ALL_ORIGINS: bool = False

    # search cursor locking (per org + campaign)
    CURSOR_LOCK_TIMEOUT_SECONDS: int = 60
    CURSOR_LOCK_BLOCKING_TIMEOUT_SECONDS: int = 10

    # enrichment cache freshness window
    ENRICHMENT_CACHE_MONTHS: int = 12

    # llm (search params generation)
    LLM_MODEL: str = "gpt-5.1"
    # Provider name used when fetching the LLM key from key-service
    LLM_PROVIDER_KEY_NAME: str = "openai"
    # Hard cap on concurrent LLM calls per process
    LLM_MAX_CONCURRENCY: int = 4
    LLM_MAX_OUTPUT_TOKENS: int = 2048
    SEARCH_PARAMS_MAX_ATTEMPTS: int = 10

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
