import logging
import os
from datetime import timedelta
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    """
    Process configuration, read once at startup from the environment
    (and a .env file, if present).
    """
    model_config = ConfigDict(frozen=True)

    github_username: str = Field(..., min_length=1, description="Account whose portfolio is served")
    github_token: Optional[str] = Field(None, description="Personal access token; optional")
    host: str = "0.0.0.0"
    port: int = Field(8080, gt=0, lt=65536)
    cache_ttl_seconds: int = Field(600, gt=0)
    probe_interval_seconds: int = Field(60, ge=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(seconds=self.cache_ttl_seconds)

    @property
    def probe_interval(self) -> timedelta:
        return timedelta(seconds=self.probe_interval_seconds)

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Builds settings from environment variables.

        Raises:
            pydantic.ValidationError: If GITHUB_USERNAME is missing or a value is malformed.
        """
        load_dotenv()

        values = {
            "github_username": os.getenv("GITHUB_USERNAME", ""),
            "github_token": os.getenv("GITHUB_TOKEN") or None,
            "host": os.getenv("HOST", "0.0.0.0"),
            "port": os.getenv("PORT", "8080"),
            "cache_ttl_seconds": os.getenv("CACHE_TTL_SECONDS", "600"),
            "probe_interval_seconds": os.getenv("PROBE_INTERVAL_SECONDS", "60"),
            "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
        }
        settings = cls(**values)

        if not settings.github_token:
            logger.warning("GITHUB_TOKEN is not set. Calls are unauthenticated and heavily rate-limited.")

        return settings
