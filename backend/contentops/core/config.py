from typing import List, Union
from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    PROJECT_NAME: str = "ContentOps API"
    API_V1_STR: str = "/api/v1"

    # CORS
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""  # empty disables the rotating file handler
    LOG_MAX_BYTES: int = 10 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 5

    # AI Services
    ANTHROPIC_API_KEY: str = ""
    OPENAI_API_KEY: str = ""
    GOOGLE_API_KEY: str = ""

    # Provider declaration order doubles as the ranking tie-breaker
    PROVIDER_ORDER: str = "anthropic,openai,google"

    ANTHROPIC_MODEL: str = "claude-3-sonnet-20240229"
    OPENAI_MODEL: str = "gpt-4-turbo-preview"
    GOOGLE_MODEL: str = "gemini-pro"
    GOOGLE_API_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"

    # USD per 1k tokens
    ANTHROPIC_COST_PER_1K: float = 0.015
    OPENAI_COST_PER_1K: float = 0.03
    GOOGLE_COST_PER_1K: float = 0.0005

    # AI Configuration
    AI_REQUEST_TIMEOUT: int = 30
    AI_MAX_RETRIES: int = 3
    AI_RETRY_MIN_WAIT: float = 1.0
    AI_RETRY_MAX_WAIT: float = 4.0
    SCHEMA_FALLBACK_ENABLED: bool = True
    HEALTH_WINDOW_SIZE: int = 50
    USE_MOCK_PROVIDER_WHEN_UNCONFIGURED: bool = True

    # Generation defaults
    DEFAULT_TONE: str = "professional"
    DEFAULT_TEMPLATE: str = "article"
    DEFAULT_TARGET_WORD_COUNT: int = 1000
    DEFAULT_TEMPERATURE: float = 0.7
    DEFAULT_MAX_TOKENS: int = 2000

    # Job queue
    QUEUE_MAX_CONCURRENT_JOBS: int = 3
    QUEUE_MAX_BATCH_SIZE: int = 20
    JOB_ESTIMATED_DURATION_SECONDS: float = 90.0
    JOB_PROGRESS_TICK_SECONDS: float = 1.0
    JOB_RETENTION_DAYS: int = 7
    JOB_STORE_BACKEND: str = "memory"  # memory, disk
    JOB_STORE_PATH: str = "/tmp/contentops_jobs"

    # Rate limiting
    RATE_LIMIT_GENERATE: str = "10/minute"
    RATE_LIMIT_ENQUEUE: str = "60/minute"

    @field_validator("JOB_STORE_BACKEND")
    @classmethod
    def check_store_backend(cls, v: str) -> str:
        if v not in ("memory", "disk"):
            raise ValueError(f"Unsupported job store backend: {v}")
        return v

    @property
    def provider_order(self) -> List[str]:
        return [i.strip().lower() for i in self.PROVIDER_ORDER.split(",") if i.strip()]


settings = Settings()
