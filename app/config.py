"""
Application Configuration
Uses Pydantic Settings for environment-based configuration
"""

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The instance is frozen: components that need secrets (token issuer,
    CSRF guard) receive it through their constructors and can rely on it
    not changing underneath them.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        frozen=True,
    )

    # Application
    PROJECT_NAME: str = "Storefront API"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(
        default="development", pattern="^(development|test|staging|production)$"
    )
    DEBUG: bool = Field(default=False)

    # Tokens
    JWT_SECRET: str
    JWT_REFRESH_SECRET: str | None = None
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Password hashing
    BCRYPT_ROUNDS: int = Field(default=10, ge=4, le=31)

    # CSRF
    CSRF_SECRET: str
    # Allow str because it can be a comma-separated string in .env
    CSRF_EXEMPT_PATHS: str | list[str] = Field(default=["/checkout/webhook"])

    # CORS
    CORS_ORIGINS: str | list[str] = Field(default=["http://localhost:3000"])

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_ECHO: bool = False

    # Redis
    REDIS_URL: str = Field(default="redis://localhost:6379/0")

    # Arq
    ARQ_REDIS_URL: str = Field(default="redis://localhost:6379/1")
    ARQ_MAX_TRIES: int = 3
    ARQ_KEEP_RESULT: int = 3600  # 1 hour

    # Rate limiting (requests per window, per client IP)
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    LOGIN_RATE_LIMIT: int = 5
    REFRESH_RATE_LIMIT: int = 10
    LOGOUT_RATE_LIMIT: int = 10
    REGISTER_RATE_LIMIT: int = 3
    PASSWORD_RESET_RATE_LIMIT: int = 3

    # Action tokens
    VERIFY_TOKEN_EXPIRE_HOURS: int = 24
    PASSWORD_RESET_TOKEN_EXPIRE_MINUTES: int = 60

    # Email
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_TLS: bool = False
    SMTP_STARTTLS: bool = True
    SMTP_FROM_EMAIL: str = "noreply@storefront.local"
    SMTP_FROM_NAME: str = "Storefront"

    # Frontend URL (email links, checkout success and cancel pages)
    FRONTEND_URL: str = "http://localhost:3000"

    # Stripe checkout
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator("CORS_ORIGINS", "CSRF_EXEMPT_PATHS", mode="before")
    @classmethod
    def parse_comma_separated(cls, v: str | list[str]) -> list[str]:
        """Parse list settings from comma-separated string"""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @property
    def COOKIE_SECURE(self) -> bool:
        """Session cookies are HTTPS-only everywhere except local development"""
        return self.ENVIRONMENT != "development"

    @property
    def JWT_REFRESH_SIGNING_KEY(self) -> str:
        return self.JWT_REFRESH_SECRET or self.JWT_SECRET


# Create global settings instance

load_dotenv()
settings = Settings()  # type: ignore[call-arg]


class Role:
    """User role constants"""

    ADMIN = "admin"
    USER = "user"


class OrderStatus:
    """Order status constants"""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"
