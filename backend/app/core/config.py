from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./stockroom.db"
    SECRET_KEY: str = "dev-insecure-key-change-in-production"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # CORS origins, JSON list in the environment
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Batch reconciliation
    BATCH_CHUNK_SIZE: int = 50
    BATCH_CHUNK_TIMEOUT_SECONDS: float = 10.0
    BATCH_ISOLATION_LEVEL: str | None = "SERIALIZABLE"

    # Rate limiting (fixed windows, per user or per IP)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_INVENTORY_MAX: int = 60
    RATE_LIMIT_INVENTORY_WINDOW_SECONDS: int = 60
    RATE_LIMIT_BULK_MAX: int = 5
    RATE_LIMIT_BULK_WINDOW_SECONDS: int = 300
    RATE_LIMIT_LOGIN_MAX: int = 5
    RATE_LIMIT_LOGIN_WINDOW_SECONDS: int = 60
    RATE_LIMIT_SIGNUP_MAX: int = 5
    RATE_LIMIT_SIGNUP_WINDOW_SECONDS: int = 3600
    RATE_LIMIT_SWEEP_SECONDS: int = 60

    # Redis / Celery
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"

    # SMTP / notifications
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = "stockroom@localhost"
    SMTP_USE_TLS: bool = True
    NOTIFICATION_ENABLED: bool = False
    LOW_STOCK_ALERT_RECIPIENTS: list[str] = []
    LOW_STOCK_SCAN_HOUR: int = 6


settings = Settings()  # type: ignore[call-arg]
