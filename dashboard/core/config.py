from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Настройки приложения
    PROJECT_NAME: str = "Operations Dashboard Gateway"
    DEBUG: bool = False

    # Адреса upstream-сервисов
    OUTBOX_API_URL: str = Field(default="http://localhost:8080")
    FEATURE_FLAGS_API_URL: str = Field(default="http://localhost:4000")
    OBSERVABILITY_API_URL: str = Field(default="http://localhost:8081")
    UPSTREAM_TIMEOUT_SECONDS: float = 30.0

    # Адрес шлюза, через который работают контроллеры дашборда
    GATEWAY_URL: str = Field(default="http://localhost:8000")

    # Опрос состояния сервисов
    HEALTH_POLL_SECONDS: int = 30
    HEALTH_TIMEOUT_SECONDS: float = 5.0

    # Экраны дашборда
    EVENTS_PAGE_SIZE: int = 10
    PUBLISH_BATCH_SIZE: int = 10
    DEFAULT_FLAGS_ENV: Literal["local", "prod"] = "local"

    @property
    def health_targets(self) -> list[tuple[str, str]]:
        """Сервисы, которые опрашивает экран статуса (через шлюз)."""
        base = self.GATEWAY_URL.rstrip("/")
        return [
            ("Outbox API", f"{base}/api/outbox/health"),
            ("Feature Flags API", f"{base}/api/feature-flags/health"),
            ("Observability", f"{base}/api/observability/health"),
        ]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


settings = Settings()
