"""Guest Sync configuration via pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class GuestSyncSettings(BaseSettings):
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///guest_sync.db"
    echo_sql: bool = False
    app_title: str = "Guest Sync"
    log_level: str = "INFO"

    # GHL Marketplace app credentials
    ghl_client_id: str = ""
    ghl_client_secret: str = ""
    ghl_redirect_uri: str = "http://localhost:3000/oauth/callback"
    ghl_install_url: str = ""
    ghl_scopes: str = "contacts.write contacts.readonly locations.readonly"
    ghl_api_base: str = "https://services.leadconnectorhq.com"
    ghl_api_version: str = "2021-07-28"

    # Every outbound call is bounded by one of these
    http_timeout_seconds: float = 30.0
    directory_timeout_seconds: float = 10.0

    token_refresh_skew_seconds: int = 300
    batch_pacing_seconds: float = 0.1
    contact_source: str = "WiFi Portal"
    device_network_tag: str = "device-network"

    # Inbound webhook auth (HMAC preferred, API key fallback, open when both empty)
    webhook_api_key: str = ""
    webhook_signing_secret: str = ""
    webhook_signature_ttl_seconds: int = 300

    model_config = {"env_prefix": "GS_", "env_file": ".env", "extra": "ignore"}

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent

    @property
    def templates_dir(self) -> Path:
        return self.base_dir / "templates"

    @property
    def ghl_token_url(self) -> str:
        return f"{self.ghl_api_base.rstrip('/')}/oauth/token"

    @property
    def scopes_list(self) -> list[str]:
        return [s for s in self.ghl_scopes.split() if s]

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}


settings = GuestSyncSettings()
