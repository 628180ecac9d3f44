"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the storage backends and
the maintenance scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional

import os

from pydantic import AliasChoices, AnyHttpUrl, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class BacklogSettings(BaseSettings):
    """Configuration required for the Backlog OAuth application and API."""

    model_config = SettingsConfigDict(populate_by_name=True)

    client_id: str = Field(..., validation_alias="BACKLOG_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="BACKLOG_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="OAUTH_REDIRECT_URI")
    space_url: AnyHttpUrl = Field(
        ...,
        validation_alias="BACKLOG_SPACE_URL",
        description="Base URL of the Backlog space, e.g. https://example.backlog.com.",
    )
    auth_url: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias="BACKLOG_AUTH_URL",
        description="Authorization endpoint. Derived from the space URL when omitted.",
    )
    token_url: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias="BACKLOG_TOKEN_URL",
        description="Token endpoint. Derived from the space URL when omitted.",
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("read",), validation_alias="BACKLOG_SCOPES"
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())

    @property
    def space_base_url(self) -> str:
        return str(self.space_url).rstrip("/")

    @property
    def authorization_endpoint(self) -> str:
        if self.auth_url is not None:
            return str(self.auth_url)
        return f"{self.space_base_url}/OAuth2AccessRequest.action"

    @property
    def token_endpoint(self) -> str:
        if self.token_url is not None:
            return str(self.token_url)
        return f"{self.space_base_url}/api/v2/oauth2/token"


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = SettingsConfigDict(populate_by_name=True)

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    verify_state: bool = Field(
        True,
        validation_alias="OAUTH_VERIFY_STATE",
        description="Reject callbacks whose state was not issued by this service.",
    )


class StorageSettings(BaseSettings):
    """Selects and configures the token/favorite storage backend."""

    model_config = SettingsConfigDict(populate_by_name=True)

    backend: Literal["memory", "sqlite", "dynamodb"] = Field(
        "memory", validation_alias="STORAGE_BACKEND"
    )
    use_dynamodb: bool = Field(
        False,
        validation_alias="USE_DYNAMODB",
        description="Legacy switch; when true it selects the dynamodb backend.",
    )
    sqlite_path: str = Field("data/backlog_bff.db", validation_alias="SQLITE_PATH")
    dynamodb_region: str = Field("ap-northeast-1", validation_alias="DYNAMODB_REGION")
    dynamodb_endpoint_url: Optional[str] = Field(
        None,
        validation_alias="DYNAMODB_ENDPOINT_URL",
        description="Optional endpoint override for DynamoDB Local.",
    )
    favorites_table_name: str = Field(
        "Favorites", validation_alias="DYNAMODB_FAVORITES_TABLE"
    )
    tokens_table_name: str = Field("AuthTokens", validation_alias="DYNAMODB_TOKENS_TABLE")
    create_tables: bool = Field(True, validation_alias="DYNAMODB_CREATE_TABLES")

    @model_validator(mode="after")
    def _apply_legacy_switch(self) -> "StorageSettings":
        if self.use_dynamodb and self.backend == "memory":
            self.backend = "dynamodb"
        return self


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(populate_by_name=True)

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class GeminiSettings(BaseSettings):
    """Configuration for the item analysis model."""

    model_config = SettingsConfigDict(populate_by_name=True)

    api_key: Optional[str] = Field(None, validation_alias="GEMINI_API_KEY")
    model_name: str = Field("gemini-1.5-flash", validation_alias="GEMINI_MODEL_NAME")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[AnyHttpUrl] = Field(
        "http://localhost:3000",
        validation_alias=AliasChoices("FRONTEND_URL", "FRONTEND_BASE_URL"),
        description="Front-end origin that receives the OAuth callback redirect.",
    )
    activity_fetch_limit: int = Field(
        100, ge=1, le=100, validation_alias="ACTIVITY_FETCH_LIMIT"
    )
    http_timeout_seconds: float = Field(
        10.0, gt=0, validation_alias="HTTP_TIMEOUT_SECONDS"
    )
    cors_allow_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        ("*",), validation_alias="CORS_ALLOW_ORIGINS"
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    backlog: BacklogSettings = Field(default_factory=BacklogSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
        if isinstance(value, (tuple, list)):
            return tuple(value)
        return tuple(origin.strip() for origin in value.split(",") if origin.strip())


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "BacklogSettings",
    "GeminiSettings",
    "OAuthSettings",
    "SecuritySettings",
    "StorageSettings",
    "get_settings",
]
