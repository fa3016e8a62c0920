from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database (durable key-value storage lives here)
    database_url: str = "sqlite+aiosqlite:///./data/hospital_ops.db"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:5173"]

    # Storage keys
    settings_storage_key: str = "notificationSettings"
    notifications_storage_key: str = "notifications"
    resources_storage_key: str = "resources"

    # Notifications
    default_user_id: str = "user-123"
    notification_retention_days: int = 30
    email_digest_hour: int = 8

    # Push sink
    push_enabled: bool = True
    push_icon: str = "/icon-192x192.png"
    push_badge: str = "/badge-72x72.png"

    # Resource merge thresholds
    resource_urgent_threshold: int = 3
    resource_low_stock_ratio: float = 0.5
    resource_min_capacity: int = 10
    seed_demo_resources: bool = True

    # Background jobs
    scheduler_enabled: bool = True

    @property
    def is_sqlite(self) -> bool:
        return "sqlite" in self.database_url
