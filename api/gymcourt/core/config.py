"""Application configuration from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "GymCourt"
    debug: bool = True
    api_prefix: str = "/api/v1"
    timezone: str = "Asia/Seoul"
    cors_origins: list[str] = []

    # Database
    database_url: str = "postgresql+asyncpg://gymcourt:gymcourt@db:5432/gymcourt"
    database_echo: bool = False

    # Identity provider tokens (verified here, issued elsewhere)
    jwt_secret: str = "dev-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_audience: str | None = None

    # Schedule board bounds (hours of the day)
    schedule_start_hour: int = 6
    schedule_end_hour: int = 24

    # Pricing: None means a gap in the rule catalog is an error.
    # Set to e.g. 85000 to price uncovered slots at a flat emergency rate.
    pricing_fallback_rate: int | None = None

    # Recurrence expansion cap (days iterated)
    recurrence_max_days: int = 1000

    model_config = {"env_prefix": "GC_", "env_file": ".env", "extra": "ignore"}


settings = Settings()
