"""Environment-driven configuration for the sponsor portal."""
import os
from dataclasses import asdict, dataclass
from typing import Optional

import dotenv

dotenv.load_dotenv(dotenv.find_dotenv())


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class PortalSettings:
    supabase_url: Optional[str]
    supabase_anon_key: Optional[str]
    supabase_service_role_key: Optional[str]
    public_app_url: str
    cron_secret: Optional[str]
    slack_bot_token: Optional[str]
    slack_webhook_secret_key: Optional[str]
    slack_default_channel: str
    invitation_ttl_days: int
    notifications_async: bool

    # Keys every deployment needs before serving traffic
    REQUIRED = ('supabase_url', 'supabase_anon_key', 'public_app_url')

    def as_app_config(self) -> dict:
        return {key.upper(): value for key, value in asdict(self).items()}


def load_settings() -> PortalSettings:
    """Read settings from the environment (after .env has been loaded)."""
    return PortalSettings(
        supabase_url=os.getenv('SUPABASE_URL') or os.getenv('PUBLIC_SUPABASE_URL'),
        supabase_anon_key=os.getenv('SUPABASE_ANON_KEY') or os.getenv('PUBLIC_SUPABASE_ANON_KEY'),
        supabase_service_role_key=os.getenv('SUPABASE_SERVICE_ROLE_KEY'),
        public_app_url=(os.getenv('PUBLIC_APP_URL') or 'http://localhost:5173').rstrip('/'),
        cron_secret=os.getenv('CRON_SECRET'),
        slack_bot_token=os.getenv('SLACK_BOT_TOKEN'),
        slack_webhook_secret_key=os.getenv('SLACK_WEBHOOK_SECRET_KEY'),
        slack_default_channel=os.getenv('SLACK_DEFAULT_CHANNEL', 'sponsor-news'),
        invitation_ttl_days=int(os.getenv('INVITATION_TTL_DAYS', '7')),
        notifications_async=_env_flag('NOTIFICATIONS_ASYNC', True),
    )


def validate_settings(settings: PortalSettings) -> tuple[bool, list[str]]:
    """Return (is_valid, missing_keys) for the settings required at start-up."""
    missing = [key.upper() for key in settings.REQUIRED if not getattr(settings, key)]
    return not missing, missing


def apply_to_app(app, settings: PortalSettings | None = None) -> PortalSettings:
    """Copy settings into ``app.config`` without clobbering explicit overrides."""
    settings = settings or load_settings()
    for key, value in settings.as_app_config().items():
        app.config.setdefault(key, value)
    return settings
