from typing import List, Optional

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=[".env", "../.env"], env_file_encoding="utf-8", extra="ignore"
    )

    # Monitoring backend (all operations are POSTed as {"action": ...} to this URL)
    MONITORING_API_URL: str = "http://localhost:54321/functions/v1/system-monitoring"
    MONITORING_API_KEY: Optional[SecretStr] = None
    MONITORING_HTTP_TIMEOUT: Optional[float] = None  # seconds; None means no client-side timeout

    # Redis Configuration (push notifications for live updates)
    REDIS_URL: str = "redis://localhost:6379"
    MONITORING_CHANNEL_PREFIX: str = "monitoring"

    # Poll cadences in seconds
    HEALTH_POLL_INTERVAL: float = 30.0
    PERFORMANCE_POLL_INTERVAL: float = 60.0
    AUTO_REFRESH: bool = True

    # Dashboard windows and limits
    PERFORMANCE_HOURS_BACK: int = 24
    ALERT_WINDOW_HOURS: int = 24
    ERROR_FETCH_LIMIT: int = 50
    FEEDBACK_FETCH_LIMIT: int = 50
    AUDIT_FETCH_LIMIT: int = 100
    EXPORT_RECORD_LIMIT: int = 10000

    # Service Ports
    MONITORING_PORT: int = 8000
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True  # Set to False for human-readable console output during development

    @model_validator(mode="after")
    def check_intervals(self):
        """Reject non-positive poll cadences."""
        if self.HEALTH_POLL_INTERVAL <= 0 or self.PERFORMANCE_POLL_INTERVAL <= 0:
            raise ValueError("Poll intervals must be positive")
        self.MONITORING_API_URL = self.MONITORING_API_URL.rstrip("/")
        return self

    @property
    def cors_origin_list(self) -> List[str]:
        """CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()
