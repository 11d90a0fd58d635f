import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def find_env_file() -> str:
    """Find the .env file in potential locations."""
    # Check environment variable first
    env_file = os.getenv("ENV_FILE")
    if env_file and os.path.exists(env_file):
        return env_file

    possible_locations = [
        # Project root (local development)
        os.path.join(Path(__file__).parent.parent.parent, ".env"),
        # Docker container root
        "/app/.env",
        # Current directory
        ".env",
    ]

    for location in possible_locations:
        if os.path.exists(location):
            return location

    return possible_locations[0]


class Settings(BaseSettings):
    """Messenger backend configuration settings"""

    # Service information
    PROJECT_NAME: str = "Messenger"
    VERSION: str = "0.1.0"

    # Environment
    ENV: str = Field(
        default="development",
        description="Environment (development, staging, production)"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    HOST: str = Field(default="0.0.0.0", description="Bind address")
    PORT: int = Field(default=5000, description="HTTP and socket.io port")

    # CORS settings, shared by the REST API and socket.io
    CORS_ORIGINS: List[str] = Field(
        default=[
            "http://localhost:5173",
            "http://localhost:3000",
            "http://localhost:3001",
        ],
        description="CORS allowed origins"
    )

    # MongoDB settings
    MONGO_URI: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection string"
    )
    MONGO_DB_NAME: str = Field(default="chat_app")

    # JWT settings
    JWT_SECRET_KEY: SecretStr = Field(default=..., min_length=32)
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(
        default=60 * 24 * 30,
        ge=1,
        le=60 * 24 * 30,
        description="Between 1 minute and 30 days"
    )

    # Socket.IO settings
    SOCKET_IO_PATH: str = "socket.io"
    SOCKET_IO_PING_TIMEOUT: int = 20
    SOCKET_IO_PING_INTERVAL: int = 25
    SOCKET_IO_MAX_HTTP_BUFFER_SIZE: int = 1000000  # 1MB
    SOCKET_REQUIRE_AUTH: bool = Field(
        default=False,
        description="Refuse socket connections without a valid token and "
                    "reject identify events for another user id"
    )

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = Field(default=True)
    LOGIN_RATE_LIMIT: str = Field(default="5/minute")

    # Password reset
    FRONTEND_URL: str = Field(default="http://localhost:3000")
    APP_NAME: str = Field(default="Messenger")
    PASSWORD_RESET_EXPIRE_MINUTES: int = Field(default=60, ge=1)
    SMTP_HOST: str = Field(default="smtp.gmail.com")
    SMTP_PORT: int = Field(default=587)
    SMTP_USER: str = Field(default="")
    SMTP_PASSWORD: SecretStr = Field(default=SecretStr(""))

    @field_validator("ENV")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed_envs = ["development", "staging", "production"]
        if v not in allowed_envs:
            raise ValueError(f"ENV must be one of {allowed_envs}")
        return v

    @field_validator("DEBUG")
    @classmethod
    def validate_debug(cls, v: bool, info: Any) -> bool:
        if info.data.get("ENV") == "production" and v:
            raise ValueError("DEBUG cannot be True in production environment")
        return v

    @field_validator("CORS_ORIGINS")
    @classmethod
    def validate_cors_origins(cls, v: List[str], info: Any) -> List[str]:
        if info.data.get("ENV") == "production":
            if "*" in v:
                raise ValueError(
                    "Wildcard CORS origin not allowed in production")
            if any(not origin.startswith("https://") for origin in v):
                raise ValueError("Production CORS origins must use HTTPS")
        return v

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def validate_jwt_secret(cls, v: SecretStr) -> SecretStr:
        if len(v.get_secret_value()) < 32:
            raise ValueError(
                "JWT_SECRET_KEY must be at least 32 characters long")
        return v

    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    """Create and return a cached Settings instance."""
    return Settings()


def get_socket_io_config(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Get Socket.IO server configuration."""
    settings = settings or get_settings()
    return {
        "async_mode": "asgi",
        "cors_allowed_origins": settings.CORS_ORIGINS,
        "ping_timeout": settings.SOCKET_IO_PING_TIMEOUT,
        "ping_interval": settings.SOCKET_IO_PING_INTERVAL,
        "max_http_buffer_size": settings.SOCKET_IO_MAX_HTTP_BUFFER_SIZE,
    }
