"""Application configuration via environment variables."""

from pathlib import Path
from pydantic_settings import BaseSettings

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    database_url: str = f"sqlite:///{PROJECT_ROOT / 'traderwatch.db'}"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173"]  # Vite dev server

    # Weex public trace API
    weex_api_url: str = "https://http-gateway1.janapw.com/api/v1/public"
    weex_timeout_seconds: float = 30.0

    # Monitor
    tick_seconds: float = 1.0
    default_poll_interval: int = 30  # seconds, for traders created without one
    max_concurrent_polls: int = 100

    # Notifications: one of "wecom", "wxpusher", "telegram", "webhook"
    notifier: str = "wxpusher"
    notification_timeout_seconds: float = 10.0

    wecom_corp_id: str = ""
    wecom_agent_id: str = ""
    wecom_secret: str = ""

    wxpusher_app_token: str = ""
    wxpusher_uids: list[str] = []

    telegram_bot_token: str = ""
    telegram_chat_ids: list[int] = []

    webhook_url: str = ""

    model_config = {"env_prefix": "TW_", "env_file": ".env"}


settings = Settings()
