"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with TASKHUB_ prefix.
No YAML files, no file-based config — just env vars (12-factor app style).

Learn: `settings` below is the process default. create_app() accepts its
own Settings instance, so tests can build apps with different knobs
without touching the environment.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via TASKHUB_* env vars."""

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
    ]

    # Auth
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Redis relay (empty = single-process, local delivery only)
    redis_url: str = ""
    redis_channel: str = "taskhub:rooms"

    # Realtime
    socket_path: str = "/api/socket"
    socket_outbox_size: int = 256  # frames buffered per connection

    # Cache
    cache_default_ttl: int = 300  # seconds
    cache_sweep_interval: float = 300.0  # seconds
    presence_cache_ttl: int = 5

    # Rate limiting
    rate_limit_rpm: int = 300  # requests per minute per IP

    model_config = {"env_prefix": "TASKHUB_"}

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure sensitive defaults are changed in non-development environments."""
        if (
            self.environment != "development"
            and self.jwt_secret == "change-me-in-production"
        ):
            raise ValueError(
                "TASKHUB_JWT_SECRET must be set to a secure value in "
                "non-development environments. Generate one with: "
                'python -c "import secrets; print(secrets.token_urlsafe(32))"'
            )
        if self.cache_default_ttl <= 0:
            raise ValueError("TASKHUB_CACHE_DEFAULT_TTL must be positive")
        return self


# Default instance — create_app() falls back to this
settings = Settings()
