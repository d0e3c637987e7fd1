# fintrack/config.py
"""
Settings for the fintrack API.

Everything is read from environment variables prefixed with ``FINTRACK_``
(or a local ``.env`` file). ``FINTRACK_JWT_SECRET`` has no default: the
service refuses to start without a signing secret.
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FINTRACK_",
        env_file=".env",
        extra="ignore",
    )

    database_url: str = Field(
        default="sqlite:///./fintrack.db",
        description="SQLAlchemy database URL",
    )

    # Credentials
    jwt_secret: str = Field(..., min_length=1, description="Token signing secret")
    jwt_algorithm: str = Field(default="HS256")
    token_expiry_days: int = Field(default=7, ge=1)
    bcrypt_rounds: int = Field(default=10, ge=4, le=31)

    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:3001"]
    )

    default_page_size: int = Field(default=10, ge=1)

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True)

    # Withdrawing from a completed goal leaves it completed unless this is on.
    reopen_goal_on_withdraw: bool = Field(default=False)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
