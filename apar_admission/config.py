"""Engine and service configuration pulled from environment variables via pydantic."""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger, mask_secret, mask_url

logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the inspection admission engine."""
    model_config = SettingsConfigDict(env_prefix="APAR_", extra="ignore")

    # geofence
    default_valid_radius_meters: float = Field(default=30.0, gt=0)

    # device positioning policy
    position_high_accuracy: bool = True
    position_timeout_seconds: float = Field(default=10.0, gt=0)
    position_max_age_seconds: float = Field(default=60.0, ge=0)

    # evidence requirements
    require_photo: bool = True
    require_selfie: bool = True

    # schedules and capture
    inspection_window_grace_hours: float = Field(default=2.0, ge=0)
    capture_countdown_seconds: int = Field(default=3, ge=0)

    # inspection backend
    backend_base_url: str = "http://localhost:8000"
    backend_token: str | None = None
    backend_timeout_seconds: float = 30.0
    backend_retries: int = Field(default=1, ge=0)
    backend_retry_backoff_seconds: float = 0.5

    # admission API
    api_key: str | None = None
    api_key_redis_url: str | None = None
    api_key_redis_set: str = "api_keys"

    # duplicate-submit protection
    submission_redis_url: str | None = None
    submission_lock_ttl_seconds: int = Field(default=120, gt=0)

    @field_validator("backend_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    dumped = settings.model_dump()
    for key in ("api_key_redis_url", "submission_redis_url", "backend_base_url"):
        dumped[key] = mask_url(dumped[key])
    for key in ("api_key", "backend_token"):
        dumped[key] = mask_secret(dumped[key])
    logger.debug(f"Loaded settings: {dumped}")
