from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional


class Settings(BaseSettings):
    # App settings
    debug: bool = Field(default=False)
    app_name: str = "Restaurant Forum"

    # Database settings
    database_url: str = Field(
        default="sqlite+aiosqlite:///./forum.db",
    )

    # Session settings (signed token in cookie, data stored server-side)
    session_secret_key: str = Field(
        default="your-session-secret-key-change-in-production"
    )
    session_algorithm: str = Field(default="HS256")
    # 1 week = 7 * 24 * 60 = 10,080 minutes
    session_expiry_minutes: int = Field(default=10080)
    session_cookie_name: str = Field(default="forum_session")
    session_cookie_secure: bool = Field(default=False)

    # bcrypt cost factor
    password_hash_rounds: int = Field(default=10)

    # Storage settings
    storage_backend: str = Field(default="local")  # "local" or "s3"
    media_dir: str = Field(default="media")
    local_base_url: str = Field(default="")
    s3_bucket: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_endpoint_url: Optional[str] = Field(default=None)
    s3_access_key_id: Optional[str] = Field(default=None)
    s3_secret_access_key: Optional[str] = Field(default=None)
    s3_public_base_url: Optional[str] = Field(default=None)

    # Upload limits (MB)
    image_max_mb: int = Field(default=5)

    # Listing sizes
    restaurants_per_page: int = Field(default=9)
    top_restaurants_limit: int = Field(default=10)
    feeds_limit: int = Field(default=10)
    description_preview_length: int = Field(default=50)

    # Metrics
    metrics_token: Optional[str] = Field(default=None)

    # Logging
    log_sample_rate: float = Field(default=0.1)

    class Config:
        env_file = ".env"
        env_prefix = "APP_"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
