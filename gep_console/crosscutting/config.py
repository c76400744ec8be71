"""
Name: Application Configuration (Settings)

Responsibilities:
  - Centralized, typed configuration using pydantic-settings
  - Validate environment variables at startup
  - Provide defaults that match the console's watchdog timings

Collaborators:
  - api/main.py: reads settings for CORS and startup validation
  - container.py: decides between HTTP and in-memory backend adapters
  - identity/session.py, identity/navigation.py: timeouts and warning TTL

Constraints:
  - No business logic, pure configuration

Notes:
  - Uses pydantic-settings for env parsing and validation
  - Singleton via lru_cache
  - Timeouts are client-side watchdogs, not server contracts
"""

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_env: Application environment (development/test/production)
        log_level: Root log level (default: INFO)
        log_json: Emit JSON logs (default: True)
        allowed_origins: Comma-separated CORS origins
        backend_url: Base URL of the hosted backend (auth + REST)
        backend_anon_key: Public (anon) API key sent as `apikey`
        use_in_memory_backend: Use in-memory adapters instead of HTTP
        bootstrap_timeout_seconds: Watchdog for session bootstrap (default: 15)
        profile_lookup_timeout_seconds: Watchdog per profile lookup (default: 5)
        sign_out_timeout_seconds: Caller race for sign-out (default: 10)
        navigation_warning_seconds: TTL of the access-denied warning (default: 5)
        http_timeout_seconds: Per-request httpx timeout
        profiles_table: Table holding user profiles (default: usuarios)
        documents_table: Table holding captured documents (default: senado)
        retry_max_attempts: Attempts for retried statistics queries
        retry_base_delay_seconds: Initial backoff delay
        retry_max_delay_seconds: Maximum backoff delay
        dev_seed_profiles: Seed demo accounts into in-memory adapters
    """

    # Environment
    app_env: str = "development"
    log_level: str = "INFO"
    log_json: bool = True

    # CORS configuration
    allowed_origins: str = "http://localhost:5173"

    # Hosted backend
    backend_url: str = ""
    backend_anon_key: str = ""
    use_in_memory_backend: bool = False

    # Watchdogs (seconds)
    bootstrap_timeout_seconds: float = 15.0
    profile_lookup_timeout_seconds: float = 5.0
    sign_out_timeout_seconds: float = 10.0
    navigation_warning_seconds: float = 5.0
    http_timeout_seconds: float = 10.0

    # Tables
    profiles_table: str = "usuarios"
    documents_table: str = "senado"

    # Retry/Resilience (solo estadísticas del dashboard)
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0

    # Dev Tools
    dev_seed_profiles: bool = False
    dev_seed_password: str = "gep-dev"

    @field_validator(
        "bootstrap_timeout_seconds",
        "profile_lookup_timeout_seconds",
        "sign_out_timeout_seconds",
        "navigation_warning_seconds",
        "http_timeout_seconds",
    )
    @classmethod
    def timeouts_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be greater than 0")
        return v

    @field_validator("retry_max_attempts")
    @classmethod
    def retry_attempts_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retry_max_attempts must be >= 1")
        return v

    @field_validator("backend_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return (v or "").strip().rstrip("/")

    @model_validator(mode="after")
    def validate_backend_requirements(self):
        if self.use_in_memory_backend:
            return self
        if self.is_production() and not (self.backend_url and self.backend_anon_key):
            raise ValueError(
                "BACKEND_URL and BACKEND_ANON_KEY are required in production"
            )
        return self

    @model_validator(mode="after")
    def validate_seed_requirements(self):
        if self.is_production() and self.dev_seed_profiles:
            raise ValueError("DEV_SEED_PROFILES must be disabled in production")
        return self

    def get_allowed_origins_list(self) -> list[str]:
        """Parse comma-separated origins into a list."""
        return [
            origin.strip()
            for origin in self.allowed_origins.split(",")
            if origin.strip()
        ]

    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    def is_test(self) -> bool:
        return self.app_env.strip().lower() in {"test", "testing", "ci"}

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get singleton Settings instance.

    Raises:
        ValidationError: If env vars are missing or invalid
    """
    return Settings()
