from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    PORT: int = 3003
    DB_PATH: str = "/data/linkdrop.db"
    LOG_LEVEL: str = "info"
    # IANA zone name for the daily submission reset; empty means host local time.
    TIMEZONE: str = ""
    METADATA_TIMEOUT_SECONDS: float = 5.0
    CORS_ALLOW_ORIGINS: list[str] = ["*"]


settings = Settings()
