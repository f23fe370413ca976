from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    PROJECT_NAME: str = "Vitalsman"
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"

    API_V1_STR: str = "/api/v1"

    DATABASE_URL: str = "sqlite+aiosqlite:///./vitalsman.db"
    REDIS_URL: str = "redis://localhost:6379/0"

    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"

    CORS_ORIGINS: str = "http://localhost:3011"

    LOG_LEVEL: str = "INFO"

    # Rate limiting for the public ingestion endpoint (per client IP)
    RATE_LIMIT_ENABLED: bool = True
    CWV_RATE_LIMIT_PER_MINUTE: int = 120

    # Aggregation
    CWV_AGGREGATE_WINDOW: int = 100  # most recent values kept per page/metric/device
    CWV_PERCENTILE: int = 75

    # Alerts
    CWV_ALERT_COOLDOWN_MINUTES: int = 60
    CWV_EMAIL_ALERTS: bool = False
    CWV_ALERT_RECIPIENTS: str = ""
    CWV_ALERT_WEBHOOK_URL: str = ""
    CWV_DASHBOARD_URL: str = "http://localhost:3011/cwv"

    # Retention for raw samples; aggregates are kept
    CWV_RETENTION_DAYS: int = 30

    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = "alerts@vitalsman.local"
    SMTP_USE_TLS: bool = True

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    @property
    def cors_origins_list(self) -> List[str]:
        if isinstance(self.CORS_ORIGINS, str):
            return [o.strip() for o in self.CORS_ORIGINS.split(",")]
        return self.CORS_ORIGINS

    @property
    def alert_recipients_list(self) -> List[str]:
        return [r.strip() for r in self.CWV_ALERT_RECIPIENTS.split(",") if r.strip()]


settings = Settings()
