"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).
Secrets (Brevo API key, JWT secret, admin token) have no usable defaults;
they must be provided by the environment.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "otp-service"


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional; without Redis the issuance rate limiter is disabled
    redis_uri: Optional[str] = None


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "otp-service"
    jwt_audience: str = "otp-service.api"
    access_token_ttl_seconds: int = 900
    jwt_secret: str = ""


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    brevo_api_key: str = ""
    brevo_sender_email: str = ""
    brevo_sender_name: str = "Account Security"


class ChallengeSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    otp_length: int = Field(default=6, ge=4)
    otp_alphabet: Literal["numeric", "alphanumeric"] = "numeric"
    otp_case_sensitive: bool = False
    otp_ttl_seconds: int = Field(default=600, gt=0)  # 10 minutes

    # Issuance rate limit (needs Redis)
    otp_max_issues_per_window: int = Field(default=3, ge=1)
    otp_issue_window_seconds: int = Field(default=3600, gt=0)


class ThrottleSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", env_parse_none_str="none"
    )

    max_failed_attempts: int = Field(default=3, ge=1)
    # None → permanent block until an administrator unblocks the subject
    lockout_cooldown_seconds: Optional[int] = Field(default=900, gt=0)


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_name: str = "otp-service"

    # Shared secret for the administrative unblock endpoint; empty disables it
    admin_token: str = ""

    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    jwt: Optional[JWTSettings] = None
    email: Optional[EmailSettings] = None
    challenge: Optional[ChallengeSettings] = None
    throttle: Optional[ThrottleSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        for name, factory in (
            ("db", DatabaseSettings),
            ("redis", RedisSettings),
            ("jwt", JWTSettings),
            ("email", EmailSettings),
            ("challenge", ChallengeSettings),
            ("throttle", ThrottleSettings),
            ("logging", LoggingSettings),
            ("sentry", SentrySettings),
        ):
            if getattr(self, name) is None:
                setattr(self, name, factory())
        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
