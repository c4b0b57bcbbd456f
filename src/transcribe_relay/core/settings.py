"""Application settings and configuration.

This module defines all configuration options for the transcription relay.
Settings are loaded from environment variables with sensible defaults; the
upstream API credential is the only value without one.
"""

from __future__ import annotations

import secrets

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Transcribe Relay", alias="APP_NAME")

    # Listener
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8081, alias="PORT")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(
        default="%(levelname)s %(asctime)s [%(name)s:%(lineno)d] %(message)s",
        alias="LOG_FORMAT",
    )

    # Upstream speech-recognition service
    upstream_api_key: str = Field(
        validation_alias=AliasChoices("UPSTREAM_API_KEY", "DEEPGRAM_API_KEY"),
    )
    upstream_url: str = Field(
        default="wss://api.deepgram.com/v1/listen",
        alias="UPSTREAM_URL",
    )
    upstream_auth_scheme: str = Field(default="Token", alias="UPSTREAM_AUTH_SCHEME")
    upstream_connect_timeout_seconds: float = Field(
        default=10.0,
        alias="UPSTREAM_CONNECT_TIMEOUT_SECONDS",
    )

    # Session auth: page nonce exchanged for a short-lived JWT
    session_secret: str | None = Field(default=None, alias="SESSION_SECRET")
    session_nonce_required: bool | None = Field(default=None, alias="SESSION_NONCE_REQUIRED")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    session_token_ttl_seconds: int = Field(default=3600, alias="SESSION_TOKEN_TTL_SECONDS")
    nonce_ttl_seconds: float = Field(default=300.0, alias="NONCE_TTL_SECONDS")
    nonce_sweep_interval_seconds: float = Field(
        default=60.0,
        alias="NONCE_SWEEP_INTERVAL_SECONDS",
    )
    nonce_header: str = Field(default="X-Session-Nonce", alias="NONCE_HEADER")

    # Files served or read by the relay
    frontend_dist_dir: str = Field(default="frontend/dist", alias="FRONTEND_DIST_DIR")
    metadata_file: str = Field(default="deepgram.toml", alias="METADATA_FILE")

    # CORS headers stamped on every response
    cors_allow_origin: str = Field(default="*", alias="CORS_ALLOW_ORIGIN")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["Content-Type", "Authorization"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("session_secret")
    @classmethod
    def blank_secret_is_unset(cls, value: str | None) -> str | None:
        """Treat ``SESSION_SECRET=`` the same as an absent secret."""
        if value is None or not value.strip():
            return None
        return value

    @property
    def nonce_enforced(self) -> bool:
        """Return whether ``/api/session`` must be gated by a page nonce.

        An explicit ``SESSION_NONCE_REQUIRED`` wins; otherwise enforcement
        follows whether an external signing secret was supplied.
        """
        if self.session_nonce_required is not None:
            return self.session_nonce_required
        return self.session_secret is not None

    @property
    def cors_headers(self) -> dict[str, str]:
        """Return the CORS headers attached to every response.

        The configured nonce header is always among the allowed headers.
        """
        allow_headers = list(self.cors_allow_headers)
        if self.nonce_header.lower() not in {header.lower() for header in allow_headers}:
            allow_headers.append(self.nonce_header)
        return {
            "Access-Control-Allow-Origin": self.cors_allow_origin,
            "Access-Control-Allow-Methods": ", ".join(self.cors_allow_methods),
            "Access-Control-Allow-Headers": ", ".join(allow_headers),
        }


def resolve_signing_secret(app_settings: Settings) -> str:
    """Return the configured secret, or a fresh process-local random one."""
    if app_settings.session_secret:
        return app_settings.session_secret
    return secrets.token_hex(32)


def load_settings() -> Settings:
    """Build settings from the environment.

    Raises:
        pydantic.ValidationError: When required configuration is missing.
    """
    return Settings()  # type: ignore[call-arg]
