from functools import lru_cache
from typing import Literal
import os
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["development", "production"]

def _env_file_for(app_env: EnvName) -> str:
    return ".env.development" if app_env == "development" else ".env.production"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "ShopChat"
    DEBUG: bool = False
    GIT_SHA: str = "unknown"
    ALLOWED_ORIGINS: str = ""  # CSV

    # API guards
    chat_rate_limit: str = "5/10 seconds"      # per shopper (X-User-Id) or client address
    ADMIN_TOKEN: str = ""                       # X-Admin-Token for the cache invalidation hook; empty disables it

    # Mongo (two clusters: conversations live apart from the catalog)
    MONGO_URI_CLIENTS: str
    MONGO_DB_CLIENTS: str = "clients"
    MONGO_URI_CATALOG: str
    MONGO_DB_CATALOG: str = "catalog"
    MONGO_TLS: bool = True

    # Redis (optional: embedding cache + cross-process session locks)
    REDIS_URL: str = ""

    # Vector cache config
    vector_cache_ttl: int = 7 * 24 * 3600      # embeddings of unchanged texts are stable
    vector_cache_prefix: str = "vec"           # redis key namespace

    # Tenant caches (0 = keep for the process lifetime)
    catalog_cache_ttl: int = 15 * 60
    config_cache_ttl: int = 15 * 60

    # Conversations
    max_history_length: int = 10
    session_lock_ttl: int = 60                 # seconds; must cover one full turn

    # Retrieval
    retrieval_k: int = 5
    embedding_batch_size: int = 64
    currency_symbol: str = "S/"

    # OpenAI
    OPENAI_API_KEY: str
    openai_timeout_s: int = 30  # seconds
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"
    OPENAI_CHAT_MODEL: str = "gpt-4o"
    chat_temperature: float = 0.2
    chat_max_tokens: int = 500

    # Business configuration service
    BUSINESS_CONFIG_URL: str = ""
    business_config_header: str = "domain"
    business_config_timeout_s: float = 10.0

    # pydantic-settings config will be set dynamically in the factory below
    model_config = SettingsConfigDict(env_file=None, case_sensitive=True)

@lru_cache
def get_settings() -> Settings:
    """
    Factory that chooses the right .env file based on APP_ENV.
    Cache makes it cheap to inject via FastAPI dependencies.
    """
    app_env: EnvName = os.getenv("APP_ENV", "development")  # earliest switch
    env_file = _env_file_for(app_env)
    return Settings(
                _env_file=env_file,  # load .env.development or .env.production
                _env_file_encoding="utf-8"
    )
