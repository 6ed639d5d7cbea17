"""Application configuration using pydantic-settings."""
import secrets
from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str

    # Redis (change feed). Disabled or unreachable Redis degrades live updates only.
    redis_url: str = "redis://localhost:6379"
    redis_enabled: bool = True

    # OAuth
    oauth_provider: str = "google"
    google_client_id: str = ""
    google_client_secret: str = ""

    # Redirect target: hosted deployments set VERCEL_URL (host only, no scheme)
    deployment_url: str = Field(
        default="",
        validation_alias=AliasChoices("deployment_url", "VERCEL_URL"),
    )
    local_url: str = "http://localhost:3000"

    # Signed browser-session cookie. Set SESSION_SECRET in deployments, or
    # every restart signs everyone out.
    session_secret: str = Field(default_factory=lambda: secrets.token_hex(32))
    session_cookie: str = "smart_bookmark_session"
    # Live per-browser controllers kept in memory; the oldest is evicted first
    max_client_sessions: int = 1000

    log_level: str = "INFO"

    @property
    def redirect_url(self) -> str:
        """Base URL the OAuth provider sends the browser back to."""
        if self.deployment_url:
            return f"https://{self.deployment_url}"
        return self.local_url

    @property
    def oauth_callback_url(self) -> str:
        """Callback route under the redirect target."""
        return f"{self.redirect_url.rstrip('/')}/auth/callback"

    @property
    def secure_cookies(self) -> bool:
        """Hosted deployments are served over https only."""
        return bool(self.deployment_url)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
