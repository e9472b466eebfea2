from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_env: str = "development"
    app_debug: bool = False
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # Database: Supabase PostgreSQL (primary) or SQLite (local dev fallback)
    database_url: str = ""  # Supabase connection string (postgresql://...)
    use_sqlite: bool = False  # Set True for local dev without Supabase

    # Legacy PostgreSQL settings (only used if database_url not set and use_sqlite=False)
    postgres_user: str = "hoa_outreach"
    postgres_password: str = "hoa_outreach_dev"
    postgres_db: str = "hoa_outreach"
    db_host: str = "localhost"
    db_port: int = 5432

    @property
    def effective_database_url(self) -> str:
        """Return the async database URL to use."""
        if self.database_url:
            url = self.database_url
            if url.startswith("sqlite"):
                return url
            # Convert postgres:// to postgresql+asyncpg://
            if url.startswith("postgres://"):
                url = "postgresql+asyncpg://" + url[len("postgres://"):]
            elif url.startswith("postgresql://"):
                url = "postgresql+asyncpg://" + url[len("postgresql://"):]
            elif not url.startswith("postgresql+asyncpg://"):
                url = "postgresql+asyncpg://" + url
            return url
        if self.use_sqlite:
            db_path = Path(__file__).parent.parent / "data" / "hoa_outreach.db"
            db_path.parent.mkdir(parents=True, exist_ok=True)
            return f"sqlite+aiosqlite:///{db_path}"
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.db_host}:{self.db_port}/{self.postgres_db}"
        )

    @property
    def is_sqlite(self) -> bool:
        return self.effective_database_url.startswith("sqlite")

    # Shared secret expected in X-API-Key from the upstream web app
    api_key: str = ""

    # Gemini grounded lookup
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_timeout_seconds: float = 60.0
    gemini_use_search_grounding: bool = True

    # Enrichment pipeline
    enrichment_batch_size: int = Field(5, ge=1)
    enrichment_batch_delay_seconds: float = Field(5.0, ge=0)
    enrichment_max_attempts: int = Field(3, ge=1)
    enrichment_retry_backoff_min: float = Field(2.0, ge=0)
    enrichment_retry_backoff_max: float = Field(30.0, ge=0)
    # e.g. "info@{slug}.com"; empty disables synthesized contact emails
    enrichment_fallback_email_template: str = ""

    # Background dispatch: "asyncio" (in-process) or "celery" (durable queue)
    task_backend: str = "asyncio"

    # Redis (only for the celery backend)
    redis_host: str = "localhost"
    redis_port: int = 6379

    @property
    def redis_url(self) -> str:
        return f"redis://{self.redis_host}:{self.redis_port}/0"

    # Completion emails (SendGrid)
    sendgrid_api_key: str = ""
    sendgrid_base_url: str = "https://api.sendgrid.com/v3"
    notification_from_email: str = "outreach@example.com"
    notification_from_name: str = "Real Estate Outreach Team"

    # Daily cap on entities submitted for enrichment (0 disables)
    daily_request_limit: int = Field(1500, ge=0)

    # CORS: allowed origins (comma-separated, or "*" for dev only)
    cors_origins: str = "http://localhost:3000"

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def validate_production(self) -> list[str]:
        """Check critical env vars for production. Returns list of warnings."""
        warnings = []
        if self.app_env == "production":
            if not self.database_url:
                warnings.append("DATABASE_URL is required in production")
            if not self.api_key:
                warnings.append("API_KEY is required in production")
            if not self.gemini_api_key:
                warnings.append("GEMINI_API_KEY is required for enrichment")
            if not self.sendgrid_api_key:
                warnings.append("SENDGRID_API_KEY recommended for completion emails")
            if self.task_backend == "asyncio":
                warnings.append(
                    "TASK_BACKEND=asyncio runs jobs in-process; use celery if the host may suspend background work"
                )
        return warnings


settings = Settings()
