from typing import List, Optional

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def split_csv(value: Optional[str]) -> List[str]:
    """Split a comma-separated setting into trimmed, non-empty entries."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    PROJECT_NAME: str = "GX Services Backend API"
    VERSION: str = "1.0.0"

    # --- Environment & Debug ---
    ENVIRONMENT: str = Field(
        default="development",
        validation_alias=AliasChoices("ENVIRONMENT", "NODE_ENV"),
    )
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None
    LOG_REDACT_PII: bool = False

    # --- Server ---
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    MAX_BODY_BYTES: int = 10 * 1024 * 1024  # 10MB

    # --- SMTP relay ---
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_SECURE: bool = False  # implicit TLS (port 465 style)
    SMTP_USER: Optional[str] = None
    SMTP_PASS: Optional[SecretStr] = None
    SMTP_TIMEOUT: float = 30.0
    # Off by default so self-signed intermediate relays are accepted.
    SMTP_TLS_REJECT_UNAUTHORIZED: bool = False

    # --- Contact form mail ---
    EMAIL_FROM: str = "noreply@localhost"
    EMAIL_FROM_NAME: str = "GX Services Contact Form"
    EMAIL_TO: str = ""

    # --- CORS ---
    ALLOWED_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins.",
    )
    ALLOWED_METHODS: List[str] = Field(
        default_factory=lambda: ["GET", "POST", "OPTIONS"],
    )
    ALLOWED_HEADERS: List[str] = Field(
        default_factory=lambda: ["Content-Type", "Authorization"],
    )

    # --- Rate Limiting / Proxy ---
    RATE_LIMIT_WINDOW_MS: int = 15 * 60 * 1000
    RATE_LIMIT_MAX_REQUESTS: int = 10
    REDIS_URL: Optional[str] = None
    TRUSTED_PROXIES: List[str] = Field(
        default_factory=lambda: ["127.0.0.1", "10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"],
        description="CIDR ranges of trusted reverse proxies for X-Forwarded-For",
    )

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore", populate_by_name=True
    )

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def default_allowed_origins(cls, v: Optional[str]) -> str:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "http://localhost:3000"
        return v

    @field_validator("RATE_LIMIT_WINDOW_MS", "RATE_LIMIT_MAX_REQUESTS")
    @classmethod
    def positive_limits(cls, v: int) -> int:
        if v < 1:
            raise ValueError("rate limit settings must be positive")
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def email_recipients(self) -> List[str]:
        return split_csv(self.EMAIL_TO)

    @property
    def allowed_origin_list(self) -> List[str]:
        return split_csv(self.ALLOWED_ORIGINS)

    @property
    def rate_limit_window_seconds(self) -> float:
        return self.RATE_LIMIT_WINDOW_MS / 1000


settings = Settings()
