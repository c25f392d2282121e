from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    A local .env file is read as a fallback.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Database
    DATABASE_URL: str = "sqlite:///./db.sqlite"

    # Logging
    LOG_LEVEL: str = "INFO"

    # Uploaded images live here and are served under /uploads
    UPLOAD_DIR: str = "uploads"

    # Gemini generative model
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"
    MODEL_TIMEOUT_SECONDS: float = 30.0
    MODEL_MAX_CONCURRENCY: int = 8

    CORS_ORIGINS: list[str] = ["*"]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()


# Global settings instance
settings = get_settings()
