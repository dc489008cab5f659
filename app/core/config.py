"""Application configuration loaded from environment variables."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Allowed URL schemes for DATABASE_URL (module-level so validators can use it).
VALID_DATABASE_URL_PREFIXES = (
    "sqlite://",
    "postgresql://",
    "postgresql+psycopg2://",
    "postgres://",
    "postgres+psycopg2://",
)

# Placeholder secret for local development; rejected when APP_ENV=prod.
DEV_JWT_SECRET = "change-me-in-production"

HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")
ASYMMETRIC_ALGORITHMS = (
    "RS256",
    "RS384",
    "RS512",
    "ES256",
    "ES384",
    "ES512",
    "PS256",
    "PS384",
    "PS512",
)

# HMAC keys shorter than this are refused in prod (SHA-256 digest size).
MIN_HMAC_SECRET_BYTES = 32


class Settings(BaseSettings):
    """Validated application settings from env and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    APP_ENV: Literal["dev", "prod"] = "dev"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_V1_PREFIX: str = "/api/v1"
    # Redirect plain HTTP to HTTPS (put behind a TLS-terminating proxy in prod).
    FORCE_HTTPS: bool = False

    DATABASE_URL: str = "sqlite:///./auth.db"

    # JWT signing: HMAC algorithms use JWT_SECRET, RSA/EC algorithms use the PEM files.
    JWT_SECRET: SecretStr | None = SecretStr(DEV_JWT_SECRET)
    JWT_ALGORITHM: str = "HS256"
    JWT_PRIVATE_KEY_FILE: Path | None = None
    JWT_PUBLIC_KEY_FILE: Path | None = None
    JWT_ISSUER: str = "identity-api"
    JWT_AUDIENCE: str = "identity-api-clients"
    JWT_EXPIRE_MINUTES: int = 60
    JWT_LEEWAY_SECONDS: int = 0

    # Password hashing cost (bcrypt log rounds).
    BCRYPT_ROUNDS: int = 12

    # Self-service registration; new accounts receive DEFAULT_ROLE.
    ALLOW_REGISTRATION: bool = True
    DEFAULT_ROLE: str = "user"

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError("LOG_LEVEL must be a logging level name (e.g. INFO, DEBUG)")
        return level

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("DATABASE_URL must be set and non-empty")
        if not any(v.strip().startswith(prefix) for prefix in VALID_DATABASE_URL_PREFIXES):
            raise ValueError(
                "DATABASE_URL must be a SQLite or PostgreSQL URL "
                "(e.g. sqlite:///./auth.db or postgresql+psycopg2://...)"
            )
        return v.strip()

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_jwt_secret(cls, v: SecretStr | None) -> SecretStr | None:
        if v is None:
            return None
        if not v.get_secret_value() or not v.get_secret_value().strip():
            raise ValueError("JWT_SECRET must be non-empty when set")
        return v

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        alg = v.strip().upper() if v else ""
        if alg not in HMAC_ALGORITHMS + ASYMMETRIC_ALGORITHMS:
            raise ValueError(
                "JWT_ALGORITHM must be one of "
                + ", ".join(HMAC_ALGORITHMS + ASYMMETRIC_ALGORITHMS)
            )
        return alg

    @field_validator("JWT_ISSUER", "JWT_AUDIENCE", "DEFAULT_ROLE")
    @classmethod
    def validate_non_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("JWT_ISSUER, JWT_AUDIENCE and DEFAULT_ROLE must be non-empty")
        return v.strip()

    @field_validator("JWT_EXPIRE_MINUTES")
    @classmethod
    def validate_jwt_expire_minutes(cls, v: int) -> int:
        if v < 1 or v > 10080:
            raise ValueError(
                "JWT_EXPIRE_MINUTES must be between 1 and 10080 (1 min to 7 days)"
            )
        return v

    @field_validator("JWT_LEEWAY_SECONDS")
    @classmethod
    def validate_jwt_leeway(cls, v: int) -> int:
        if v < 0 or v > 300:
            raise ValueError("JWT_LEEWAY_SECONDS must be between 0 and 300")
        return v

    @field_validator("BCRYPT_ROUNDS")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        if v < 4 or v > 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31")
        return v

    @model_validator(mode="after")
    def validate_signing_config(self) -> "Settings":
        """Refuse insecure or incomplete signing configuration before the app starts."""
        if self.JWT_ALGORITHM in HMAC_ALGORITHMS:
            if self.JWT_SECRET is None:
                raise ValueError(f"JWT_SECRET is required for {self.JWT_ALGORITHM}")
            if self.APP_ENV == "prod":
                secret = self.JWT_SECRET.get_secret_value()
                if secret == DEV_JWT_SECRET:
                    raise ValueError("JWT_SECRET must be changed from the default in prod")
                if len(secret.encode("utf-8")) < MIN_HMAC_SECRET_BYTES:
                    raise ValueError(
                        f"JWT_SECRET must be at least {MIN_HMAC_SECRET_BYTES} bytes in prod"
                    )
        else:
            if self.JWT_PRIVATE_KEY_FILE is None or self.JWT_PUBLIC_KEY_FILE is None:
                raise ValueError(
                    f"JWT_PRIVATE_KEY_FILE and JWT_PUBLIC_KEY_FILE are required for {self.JWT_ALGORITHM}"
                )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance (safe to call from dependencies)."""
    return Settings()


settings = get_settings()
