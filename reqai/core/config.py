"""
Configuration management using Pydantic Settings.
Loads settings from environment variables and .env files.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExtractionSettings(BaseSettings):
    """Text extraction provider configuration."""

    model_config = SettingsConfigDict(env_prefix="EXTRACTION_")

    command: Optional[str] = Field(
        default=None,
        description="Extraction tool command line; file paths are appended as arguments",
    )
    upload_dir: str = Field(default="uploads", description="Root directory for uploaded batches")
    results_path: str = Field(
        default="extraction_results.json",
        description="Path of the persisted extraction snapshot",
    )
    responses_path: str = Field(
        default="chat_responses.json",
        description="Path of the best-effort assistant response log",
    )
    output_file: Optional[str] = Field(
        default=None,
        description="Artifact written by the extraction tool (stdout is parsed when unset)",
    )
    timeout_seconds: float = Field(default=120.0, gt=0, description="Extraction process timeout")


class LLMSettings(BaseSettings):
    """Chat-completion endpoint configuration."""

    model_config = SettingsConfigDict(env_prefix="LLM_")

    api_url: str = Field(
        default="https://api.mistral.ai/v1/chat/completions",
        description="Chat-completion endpoint URL",
    )
    api_key: str = Field(default="", description="Bearer token for the chat-completion API")
    model: str = Field(default="mistral-small", description="Model name")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Sampling temperature")
    top_p: float = Field(default=1.0, ge=0.0, le=1.0, description="Nucleus sampling")
    max_tokens: int = Field(default=500, gt=0, description="Max tokens per reply")
    backlog_max_tokens: int = Field(
        default=2000, gt=0, description="Max tokens for backlog structuring replies"
    )
    timeout: float = Field(default=60.0, gt=0, description="Request timeout in seconds")
    fallback_mode: str = Field(
        default="local",
        description="Failure policy for conversations: 'local' canned reply or 'error'",
    )
    max_attempts: int = Field(default=1, ge=1, description="Attempts per call (1 = no retry)")
    system_prompt: Optional[str] = Field(
        default=(
            "You are ReqAI, a requirements engineering assistant. Help the user "
            "extract, clarify, organize and prioritize requirements from their "
            "documents and conversation."
        ),
        description="Directive placed first in every new conversation",
    )

    @field_validator("fallback_mode")
    @classmethod
    def validate_fallback_mode(cls, v: str) -> str:
        allowed = {"local", "error"}
        if v.lower() not in allowed:
            raise ValueError(f"fallback_mode must be one of {allowed}")
        return v.lower()


class ContextSettings(BaseSettings):
    """Conversation window configuration."""

    model_config = SettingsConfigDict(env_prefix="CONTEXT_")

    window_size: int = Field(default=8, description="Max messages transmitted per turn")
    preserved_head: int = Field(default=2, description="Leading messages always kept")
    max_content_chars: int = Field(default=1500, gt=0, description="Per-message character budget")

    @model_validator(mode="after")
    def validate_window(self) -> "ContextSettings":
        if self.preserved_head < 0:
            raise ValueError("preserved_head must not be negative")
        if self.window_size <= self.preserved_head:
            raise ValueError("window_size must be larger than preserved_head")
        return self


class JiraSettings(BaseSettings):
    """Jira OAuth 2.0 (3LO) and REST configuration."""

    model_config = SettingsConfigDict(env_prefix="JIRA_")

    client_id: str = Field(default="", description="OAuth client ID")
    client_secret: str = Field(default="", description="OAuth client secret")
    redirect_uri: Optional[str] = Field(
        default=None,
        description="OAuth callback URL (defaults to <app_url>/api/v1/jira/callback)",
    )
    authorize_url: str = Field(default="https://auth.atlassian.com/authorize")
    token_url: str = Field(default="https://auth.atlassian.com/oauth/token")
    revoke_url: Optional[str] = Field(
        default=None, description="Token revocation endpoint (revocation skipped when unset)"
    )
    api_base_url: str = Field(default="https://api.atlassian.com")
    audience: str = Field(default="api.atlassian.com")
    scopes: list[str] = Field(
        default=["read:jira-work", "read:jira-user", "offline_access"],
        description="Requested OAuth scopes",
    )
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    max_attempts: int = Field(default=1, ge=1, description="Attempts per tracker call")

    state_cookie_name: str = Field(default="jira_auth_state")
    state_cookie_max_age: int = Field(default=600, description="State cookie lifetime (seconds)")
    auth_cookie_name: str = Field(default="jira_auth_data")
    auth_cookie_max_age: int = Field(
        default=60 * 60 * 24 * 30, description="Auth cookie lifetime (seconds)"
    )
    refresh_margin_seconds: int = Field(
        default=60, ge=0, description="Refresh tokens this close to expiry before use"
    )


class SecuritySettings(BaseSettings):
    """Security configuration."""

    model_config = SettingsConfigDict(env_prefix="SECURITY_")

    secret_key: str = Field(default="change-me-in-production", description="Secret key for signing")
    allowed_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="CORS allowed origins",
    )


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="reqai", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=True, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    app_url: str = Field(default="http://localhost:3000", description="Frontend base URL")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Sub-settings
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    context: ContextSettings = Field(default_factory=ContextSettings)
    jira: JiraSettings = Field(default_factory=JiraSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        if v.lower() not in allowed:
            raise ValueError(f"app_env must be one of {allowed}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def jira_redirect_uri(self) -> str:
        """OAuth callback URL registered with the provider."""
        return self.jira.redirect_uri or f"{self.app_url.rstrip('/')}/api/v1/jira/callback"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Convenience function for accessing settings
settings = get_settings()
