"""Application settings using Pydantic for environment-based configuration."""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Stripe Configuration
    stripe_secret_key: Optional[str] = Field(default=None, description="Stripe secret API key")
    stripe_webhook_secret: Optional[str] = Field(
        default=None, description="Stripe webhook signing secret"
    )
    stripe_api_version: str = Field(default="2023-10-16", description="Stripe API version")

    # PayPal Configuration
    paypal_client_id: Optional[str] = Field(default=None, description="PayPal REST client id")
    paypal_client_secret: Optional[str] = Field(
        default=None, description="PayPal REST client secret"
    )
    paypal_webhook_id: Optional[str] = Field(
        default=None, description="PayPal webhook id used for signature verification"
    )

    # Email Configuration
    email_host: str = Field(default="smtp.gmail.com", description="SMTP host")
    email_port: int = Field(default=587, description="SMTP port")
    email_user: Optional[str] = Field(default=None, description="SMTP username")
    email_pass: Optional[str] = Field(default=None, description="SMTP password")
    email_from: str = Field(default="commercial@ssdf.work.gd", description="Sender address")
    email_subject: str = Field(
        default="Your SSDF License Keys - Sovereign Spiral",
        description="Subject line of the license email",
    )

    # Storefront
    frontend_url: Optional[str] = Field(
        default=None, description="Base URL for success/cancel redirects"
    )
    brand_name: str = Field(
        default="Sovereign Spiral Development Framework", description="Seller name"
    )
    team_signature: str = Field(default="Sovereign Spiral Team", description="Email signature")
    support_email: str = Field(default="support@ssdf.work.gd", description="Support address")
    projects_url: str = Field(
        default="https://github.com/CreoDAMO", description="Where the MIT sources live"
    )
    currency: str = Field(default="USD", description="Checkout currency")

    # Rate Limiting
    checkout_rate_limit_window_seconds: float = Field(
        default=15 * 60, description="Checkout limiter window (seconds)"
    )
    checkout_rate_limit_max: int = Field(default=50, description="Checkout requests per window")
    webhook_rate_limit_window_seconds: float = Field(
        default=60, description="Webhook limiter window (seconds)"
    )
    webhook_rate_limit_max: int = Field(default=100, description="Webhook requests per window")

    # Timeouts
    provider_timeout_seconds: float = Field(
        default=8.0, description="Timeout for payment provider calls"
    )
    email_timeout_seconds: float = Field(default=8.0, description="Timeout for SMTP delivery")

    # Application Configuration
    app_name: str = Field(default="license-bridge", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    app_version: str = Field(default="1.0.0", description="Reported service version")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=4242, description="API port")
    allowed_origins: str = Field(default="*", description="CORS allowed origins (comma-separated)")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("stripe_secret_key")
    @classmethod
    def validate_stripe_key(cls, v: Optional[str]) -> Optional[str]:
        """Validate that the Stripe secret key looks like a secret key."""
        if v is None or v == "":
            return None
        if not v.startswith(("sk_test_", "sk_live_", "rk_test_", "rk_live_")):
            raise ValueError(
                "Invalid Stripe secret key format. Must start with 'sk_test_' or 'sk_live_'"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    def get_allowed_origins_list(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"

    @property
    def paypal_base_url(self) -> str:
        """Live PayPal API in production, sandbox everywhere else."""
        if self.is_production:
            return "https://api-m.paypal.com"
        return "https://api-m.sandbox.paypal.com"

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key)

    @property
    def paypal_configured(self) -> bool:
        return bool(self.paypal_client_id)

    @property
    def email_configured(self) -> bool:
        return bool(self.email_user)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
