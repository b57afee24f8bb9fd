import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    def __init__(self):
        self.app_name = "Invoicing backend"
        self.api_version = "1.0.0"
        self.environment = os.getenv("APP_ENV", "development")
        self.secret_key = os.getenv("SECRET_KEY", "CHANGE_ME")
        self.SECRET_KEY = self.secret_key
        self.access_token_expire_minutes = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
        self.ACCESS_TOKEN_EXPIRE_MINUTES = self.access_token_expire_minutes
        # "sqlite://" selects the in-memory store
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./invoicing.db")
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        # Billing defaults. Calendar dates are always evaluated in UTC.
        self.timezone = "UTC"
        self.default_days_before = 7
        self.upcoming_window_days = 30
        self.recent_invoices_limit = 5
        self.upcoming_invoices_limit = 3

        # Recurring generation
        self.auto_send_timeout_seconds = float(os.getenv("AUTO_SEND_TIMEOUT_SECONDS", "10"))
        self.scheduler_enabled = _env_bool("SCHEDULER_ENABLED", False)
        self.generation_hour_utc = int(os.getenv("GENERATION_HOUR_UTC", "6"))

        # External capabilities
        self.sendgrid_api_key = os.getenv("SENDGRID_API_KEY")
        self.from_email = os.getenv("FROM_EMAIL", "billing@example.com")
        self.frontend_url = os.getenv("FRONTEND_URL", "http://localhost:5000")
        self.stripe_secret_key = os.getenv("STRIPE_SECRET_KEY")
        self.stripe_webhook_secret = os.getenv("STRIPE_WEBHOOK_SECRET")
        self.currency = os.getenv("CURRENCY", "usd")


_settings_instance = None


def get_settings():
    """Return a singleton Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
