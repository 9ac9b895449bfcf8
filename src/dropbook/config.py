"""Configuration management for Dropbook.

Application credentials always come from the environment (optionally via a
.env file). User tokens come from the credential store, or from environment
overrides when the store cannot be used.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field

from dropbook.storage import TieredCredentialStore, default_credential_store
from dropbook.utils.errors import NotConfiguredError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".dropbook"


class Settings(BaseModel):
    """Application settings loaded from environment variables."""
    app_key: str = Field(default="", description="Dropbox app key")
    app_secret: str = Field(default="", description="Dropbox app secret")
    access_token: str = Field(default="", description="Access token override (environment fallback only)")
    refresh_token: str = Field(default="", description="Refresh token override (environment fallback only)")
    config_dir: Path = Field(default=DEFAULT_CONFIG_DIR, description="Directory holding auth.json")
    use_keyring: bool = Field(default=True, description="Use the OS keyring as the primary token store")

    def require_app_credentials(self) -> tuple[str, str]:
        """Return (app_key, app_secret) or raise NotConfiguredError."""
        if not self.app_key or not self.app_secret:
            raise NotConfiguredError(
                "DROPBOX_APP_KEY and DROPBOX_APP_SECRET must both be set."
            )
        return self.app_key, self.app_secret


class DropbookConfig(BaseModel):
    """Effective runtime configuration."""
    app_key: str
    app_secret: str
    access_token: str | None = None
    refresh_token: str | None = None
    expiration_timestamp: float | None = None
    uid: str | None = None

    @classmethod
    def load_from_storage(
        cls,
        settings: Settings | None = None,
        store: TieredCredentialStore | None = None,
    ) -> DropbookConfig:
        """Resolve user tokens from the credential store (keyring, then file).

        Environment token variables are ignored on this path.
        """
        settings = settings or load_settings()
        app_key, app_secret = settings.require_app_credentials()
        store = store or default_credential_store(settings)

        token_data = store.load()
        return cls(
            app_key=app_key,
            app_secret=app_secret,
            access_token=token_data.access_token,
            refresh_token=token_data.refresh_token,
            expiration_timestamp=token_data.expiration_timestamp,
            uid=token_data.uid,
        )

    @classmethod
    def load_from_environment(cls, settings: Settings | None = None) -> DropbookConfig:
        """Build the config from environment variables only, no storage access."""
        settings = settings or load_settings()
        app_key, app_secret = settings.require_app_credentials()
        return cls(
            app_key=app_key,
            app_secret=app_secret,
            access_token=settings.access_token or None,
            refresh_token=settings.refresh_token or None,
        )


def _env(*keys: str, default: str = "") -> str:
    """Try multiple env var names, return the first one found."""
    for key in keys:
        val = os.environ.get(key, "")
        if val:
            return val.strip().strip('"')
    return default


def load_environment() -> None:
    """Load a .env file from the working directory (or a parent) if present.

    Variables already set in the process environment take precedence.
    """
    env_path = find_dotenv(usecwd=True)
    if env_path:
        load_dotenv(env_path, override=False)
        logger.info("Loaded environment from %s", env_path)


def load_settings() -> Settings:
    """Load settings from environment variables."""
    config_dir = _env("DROPBOOK_CONFIG_DIR")
    return Settings(
        app_key=_env("DROPBOX_APP_KEY"),
        app_secret=_env("DROPBOX_APP_SECRET"),
        access_token=_env("DROPBOX_ACCESS_TOKEN"),
        refresh_token=_env("DROPBOX_REFRESH_TOKEN"),
        config_dir=Path(config_dir).expanduser() if config_dir else DEFAULT_CONFIG_DIR,
        use_keyring=_env("DROPBOOK_USE_KEYRING", default="true").lower() in ("true", "1", "yes"),
    )


def load_config(settings: Settings | None = None) -> DropbookConfig:
    """Load the effective config: stored tokens first, environment as fallback."""
    settings = settings or load_settings()
    try:
        return DropbookConfig.load_from_storage(settings)
    except Exception as e:
        logger.debug("Stored credentials unavailable (%s); using environment", e)
        return DropbookConfig.load_from_environment(settings)
