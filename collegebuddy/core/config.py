"""
Configuration management for College Buddy.

Handles environment-based configuration for development and production.
"""
import os
from pathlib import Path
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: str = os.getenv("ENVIRONMENT", "development")

    # Debug - handle non-boolean values gracefully
    debug: bool = False

    @field_validator("debug", mode="before")
    @classmethod
    def parse_debug(cls, v):
        """Parse debug from environment, handling non-boolean values."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes")
        debug_env = os.getenv("DEBUG", "false").lower()
        return debug_env in ("true", "1", "yes")

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "5000"))

    # Database
    database_path: str = os.getenv("DATABASE_PATH", str(Path.home() / ".collegebuddy" / "collegebuddy.db"))
    database_echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"

    # Security
    secret_key: str = os.getenv("SECRET_KEY", "college-buddy-secret")
    token_algorithm: str = os.getenv("TOKEN_ALGORITHM", "HS256")
    token_expire_hours: int = int(os.getenv("TOKEN_EXPIRE_HOURS", "168"))  # 7 days

    # CORS
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")

    # Live messaging
    ws_max_frame_size: int = int(os.getenv("WS_MAX_FRAME_SIZE", str(64 * 1024)))
    message_max_length: int = int(os.getenv("MESSAGE_MAX_LENGTH", "4000"))
    # Tolerance used by clients when collapsing live and fetched copies of one message
    dedup_window_ms: int = int(os.getenv("DEDUP_WINDOW_MS", "1000"))

    class Config:
        env_file = str(Path(__file__).resolve().parent.parent.parent / ".env")
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()


def get_database_url() -> str:
    """Get SQLite database URL."""
    db_path = Path(settings.database_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{settings.database_path}"
