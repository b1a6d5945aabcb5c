import logging
import os
import tomllib
from datetime import timedelta
from enum import StrEnum
from pathlib import Path
from typing import Literal

from pydantic import SecretStr, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from yarl import URL

PROJECT_DIR = Path(__file__).parent.parent.parent
PROJECT_TOML_PATH = PROJECT_DIR / "pyproject.toml"


def _load_project_metadata() -> dict:
    if PROJECT_TOML_PATH.is_file():
        with open(PROJECT_TOML_PATH, "rb") as f:
            return tomllib.load(f)["project"]

    # Installed without the source tree next to it
    from importlib.metadata import metadata

    dist = metadata("credgate")
    return {
        "name": dist["Name"],
        "version": dist["Version"],
        "description": dist["Summary"] or "",
    }


PYPROJECT_CONTENT = _load_project_metadata()


class Environment(StrEnum):
    LOCAL = "local"
    DEV = "dev"
    STG = "stg"
    PRD = "prd"


def convert_app_name(s: str) -> str:
    return " ".join(word.capitalize() for word in s.split("-"))


class Settings(BaseSettings):
    """
    Application settings.

    These parameters can be configured
    with environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=False,
        extra="ignore",
    )

    # App variables
    app_name: str = PYPROJECT_CONTENT["name"]
    app_title: str = os.getenv("APP_TITLE", convert_app_name(app_name))
    app_version: str = PYPROJECT_CONTENT["version"]
    app_description: str = PYPROJECT_CONTENT["description"]

    backend_host: str = "0.0.0.0"
    backend_port: int = 8000

    cors_origins: str = "http://localhost:3000"

    # Number of workers for uvicorn
    workers_count: int = 1

    # Enable uvicorn reloading
    reload_uvicorn: bool = False

    # Current working environment
    current_environment: Environment = Environment.LOCAL
    log_level: int = logging.INFO
    log_to_file: bool = True
    log_dir: Path = Path("logs")
    debug: bool = False

    # Variables for the database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_db: str = "credgate"
    postgres_db_schema: str = "public"
    db_create_tables: bool = True

    # Variables for Redis (only used by the redis rate limit backend)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_user: str | None = None
    redis_pass: str | None = None
    redis_base: int | None = None
    redis_max_pool_connections: int = 10
    redis_socket_connect_timeout: int = 5  # Socket connect timeout in seconds
    redis_socket_timeout: int = 5  # Socket timeout in seconds

    # Rate limiting settings (requests per window)
    rate_limit_enabled: bool = True
    rate_limit_backend: Literal["memory", "redis"] = "memory"
    rate_limit_window: int = int(timedelta(minutes=15).total_seconds())
    rate_limit_default: int = 100  # General API endpoints
    rate_limit_strict: int = 10  # Credential-issuing endpoints (signup, login, refresh)
    rate_limit_sensitive: int = 5  # Sensitive operations
    rate_limit_sensitive_window: int = int(timedelta(hours=1).total_seconds())

    # Token security settings
    access_token_secret: SecretStr
    renewal_token_secret: SecretStr
    access_token_expire_seconds: int = int(timedelta(minutes=15).total_seconds())
    renewal_token_expire_seconds: int = int(timedelta(days=7).total_seconds())
    jwt_algorithm: str = "HS256"

    # Renewal credential cookie
    renewal_cookie_name: str = "refreshToken"
    renewal_cookie_path: str = "/"

    @model_validator(mode="after")
    def validate_signing_keys(self) -> "Settings":
        """
        Refuse to start without two distinct, non-empty signing secrets.
        """
        access = self.access_token_secret.get_secret_value()
        renewal = self.renewal_token_secret.get_secret_value()

        if not access.strip():
            raise ValueError("ACCESS_TOKEN_SECRET must not be empty")

        if not renewal.strip():
            raise ValueError("RENEWAL_TOKEN_SECRET must not be empty")

        if access == renewal:
            raise ValueError("ACCESS_TOKEN_SECRET and RENEWAL_TOKEN_SECRET must differ")

        if self.access_token_expire_seconds <= 0 or self.renewal_token_expire_seconds <= 0:
            raise ValueError("Token lifetimes must be positive")

        if self.access_token_expire_seconds >= self.renewal_token_expire_seconds:
            raise ValueError("Access token lifetime must be shorter than renewal token lifetime")

        return self

    @computed_field
    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS origins from a comma-separated string.
        """
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @computed_field
    @property
    def renewal_cookie_secure(self) -> bool:
        """
        Renewal cookie is only restricted to HTTPS in production.
        """
        return self.current_environment == Environment.PRD

    @computed_field
    @property
    def db_url(self) -> URL:
        """
        Assemble database URL from settings.
        """
        return URL.build(
            scheme="postgresql+asyncpg",
            host=self.postgres_host,
            port=self.postgres_port,
            user=self.postgres_user,
            password=self.postgres_password,
            path=f"/{self.postgres_db}",
        )

    @computed_field
    @property
    def redis_url(self) -> URL:
        """
        Assemble REDIS URL from settings.
        """
        path = ""

        if self.redis_base is not None:
            path = f"/{self.redis_base}"

        return URL.build(
            scheme="redis",
            host=self.redis_host,
            port=self.redis_port,
            user=self.redis_user,
            password=self.redis_pass,
            path=path,
        )


settings = Settings()  # type: ignore
