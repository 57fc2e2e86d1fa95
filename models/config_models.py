"""Configuration models for validation using Pydantic."""

from typing import Optional
from pydantic import BaseModel, Field, field_validator


class OAuthConfig(BaseModel):
    """GitHub OAuth app credentials and session signing secret.

    All fields are optional at load time. The authorize endpoint checks
    ``missing_settings()`` and refuses to start the flow when any required
    value is absent.
    """

    github_client_id: Optional[str] = Field(None, description="GitHub OAuth app client id")
    github_client_secret: Optional[str] = Field(None, description="GitHub OAuth app client secret")
    github_callback_url: Optional[str] = Field(None, description="Redirect URI registered with the OAuth app")
    session_secret: Optional[str] = Field(None, description="HMAC secret for state and session tokens")

    @field_validator("github_callback_url")
    @classmethod
    def validate_callback_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate callback URL format."""
        if not v:
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError("Callback URL must start with http:// or https://")
        return v

    @field_validator("github_client_id", "github_client_secret", "session_secret")
    @classmethod
    def empty_as_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    def missing_settings(self) -> list[str]:
        """Names of the settings the authorize step needs but does not have."""
        required = {
            "GITHUB_CLIENT_ID": self.github_client_id,
            "GITHUB_CALLBACK_URL": self.github_callback_url,
            "SESSION_SECRET": self.session_secret,
        }
        return [name for name, value in required.items() if not value]


class Config(BaseModel):
    """Application configuration."""

    oauth: OAuthConfig = Field(default_factory=OAuthConfig)
    log_level: str = Field(default="INFO", description="Logging level")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"],
        description="Origins allowed to call the API with credentials",
    )
    storage_path: Optional[str] = Field(None, description="JSON file used as local storage by the CLI")
    request_timeout: float = Field(default=30.0, gt=0, description="Upstream request timeout in seconds")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper
