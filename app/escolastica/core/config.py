from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "ESCOLASTICA"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite+pysqlite:///./escolastica.db"
    SUPERADMIN_USERNAME: str = "superadmin"
    SUPERADMIN_EMAIL: str = "superadmin@example.com"
    SUPERADMIN_PASSWORD: str = "change-me"
    SUPERADMIN_FULL_NAME: str = "System Administrator"
    TRANSFER_EXPIRY_DAYS: int = 7
    STUDENT_SEARCH_MIN_LENGTH: int = 3
    STUDENT_SEARCH_LIMIT: int = 10
    METRICS_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"


settings = Settings()
