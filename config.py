import os

try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass  # dotenv is optional for production, but useful locally


class ConfigurationError(RuntimeError):
    """Required configuration is missing; raised before any work starts."""


class Settings:
    # --- Store (hosted Postgres, service-role connection string) ---
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_PUBLIC_URL = os.environ.get("DATABASE_PUBLIC_URL")

    # --- Redis (Celery broker) ---
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

    # --- Mail relay ---
    MAILER_URL = os.environ.get("MAILER_URL")
    MAILER_API_KEY = os.environ.get("MAILER_API_KEY")
    MAILER_TIMEOUT = int(os.environ.get("MAILER_TIMEOUT", "15"))

    # --- Telnyx (SMS) ---
    TELNYX_API_KEY = os.environ.get("TELNYX_API_KEY")
    TELNYX_FROM_NUMBER = os.environ.get("TELNYX_FROM_NUMBER")

    # --- Scheduling ---
    DEFAULT_TIMEZONE = os.environ.get("DEFAULT_TIMEZONE", "UTC")
    REMINDER_SCAN_INTERVAL = float(os.environ.get("REMINDER_SCAN_INTERVAL", "300"))
    GOAL_CHECK_HOUR = int(os.environ.get("GOAL_CHECK_HOUR", "20"))

    # --- Alerting ---
    FOLLOWUP_DAYS = int(os.environ.get("FOLLOWUP_DAYS", "3"))
    ALERT_EMERGENCY_NUMBER = os.environ.get("ALERT_EMERGENCY_NUMBER", "112")

    def database_url(self) -> str:
        url = self.DATABASE_URL or self.DATABASE_PUBLIC_URL
        if not url:
            raise ConfigurationError("DATABASE_URL not set")
        return url


settings = Settings()
