"""
Configuration management for the Readwise MCP server.
"""

from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .. import version

DEFAULT_PORT = 8081


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Host to bind the HTTP server")
    port: int = Field(default=DEFAULT_PORT, description="Port to bind the HTTP server")
    transport: Literal["stdio", "sse"] = Field(default="stdio", description="Transport binding")
    debug: bool = Field(default=False, description="Enable debug logging")
    log_level: str = Field(default="INFO", description="Log level")

    # Application
    app_name: str = Field(default="readwise-mcp")
    app_version: str = Field(default_factory=version)

    # Readwise
    readwise_api_key: str = Field(default="", description="Readwise access token")
    readwise_base_url: str = Field(
        default="https://readwise.io/api/v2",
        description="Readwise highlights API base URL",
    )
    reader_base_url: str = Field(
        default="https://readwise.io/api/v3",
        description="Readwise Reader API base URL",
    )
    request_timeout: float = Field(default=30.0, description="Upstream request timeout in seconds")
    max_retries: int = Field(default=3, ge=0, description="Retries after a rate-limited response")

    # Endpoint protection
    server_auth_token: Optional[str] = Field(
        default=None,
        description="Token required on /sse, /messages and /mcp when set",
    )

    # CORS
    cors_enabled: bool = Field(default=True, description="Enable CORS middleware")
    cors_allowed_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed origins ('*' allows all)",
    )

    @field_validator("port")
    @classmethod
    def _valid_port(cls, value: int) -> int:
        """Fall back to the default port when the value is out of range."""
        if not 0 <= value < 65536:
            return DEFAULT_PORT
        return value

    @field_validator("server_auth_token")
    @classmethod
    def _blank_token_disables_gate(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def parsed_cors_origins(self) -> List[str]:
        """Allowed CORS origins as a list."""
        origins = [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]
        return origins or ["*"]

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level.upper()
