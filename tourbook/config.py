from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./tourbook.db"

    # Tokens are issued by the auth service; this service only verifies them
    SECRET_KEY: str
    ALGORITHM: str = "HS256"

    REDIS_URL: str = "redis://localhost:6379/0"

    LOG_LEVEL: str = "INFO"

    # Maximum simultaneously active (assigned / in_progress) requests per guide
    MAX_GUIDE_WORKLOAD: int = 10

    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 50

    SUSPICIOUS_ACTIVITY_WINDOW_SECONDS: int = 3600
    SUSPICIOUS_ACTIVITY_THRESHOLD: int = 10

    PAYMENT_PROOF_MAX_BYTES: int = 5 * 1024 * 1024
    PAYMENT_PROOF_MIME_TYPES: list[str] = ["image/jpeg", "image/png", "application/pdf"]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
