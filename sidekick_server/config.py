"""Application configuration using pydantic-settings.

Credentials come from environment variables. Missing credentials do not stop
the server from starting; they are reported per request as ConfigurationError
so that malformed requests are still rejected with 400.
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ALLOWED_ORIGINS = (
    "http://localhost:3000,https://docs.google.com,https://docs.googleusercontent.com"
)

# <ref>--<repo>--<owner>.aem.page / .aem.live preview and production hosts
DEFAULT_ALLOWED_ORIGIN_REGEX = r"https://[^.]+--[^.]+--[^.]+\.aem\.(page|live)"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Credential environment variables:
    - GOOGLE_SA_EMAIL / GOOGLE_SA_PRIVATE_KEY: service account used for Docs and Sheets
    - GOOGLE_DELEGATED_USER: user to impersonate with domain-wide delegation (optional)
    - FIREFLY_CLIENT_ID / FIREFLY_CLIENT_SECRET: Adobe IMS client credentials
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    port: int = 8001
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Google service account
    google_sa_email: str = ""
    google_sa_private_key: str = ""
    google_delegated_user: str = ""
    google_timeout: float = 60.0

    # Adobe Firefly
    firefly_client_id: str = ""
    firefly_client_secret: str = ""
    firefly_timeout: float = 60.0

    # CORS (comma-separated exact origins plus one regex)
    allowed_origins: str = DEFAULT_ALLOWED_ORIGINS
    allowed_origin_regex: str = DEFAULT_ALLOWED_ORIGIN_REGEX

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def allowed_origins_list(self) -> list[str]:
        """Parse allowed origins from comma-separated string."""
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def google_private_key(self) -> str:
        """Service account key with escaped newlines restored.

        Keys pasted into environment variables usually carry literal ``\\n``.
        """
        return self.google_sa_private_key.replace("\\n", "\n")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is a known value."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of: {allowed}")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known value."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of: {allowed}")
        return v_upper

    @field_validator("google_timeout", "firefly_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the application.
    """
    return Settings()
