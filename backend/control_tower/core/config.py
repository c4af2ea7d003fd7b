"""Module: config."""

from pydantic_settings import BaseSettings

# Centralized runtime configuration loaded from environment variables.
class Settings(BaseSettings):
    # Primary SQLAlchemy connection string for the backend database.
    database_url: str

    # Root log level name and optional log file path.
    log_level: str = "INFO"
    log_file: str | None = None

    # Global switch for the mutation interceptor, plus per-resource opt-outs
    # (e.g. AUDIT_DISABLED_RESOURCES='["checklist_template"]').
    audit_enabled: bool = True
    audit_disabled_resources: list[str] = []

    # Read-modify-write attempts for status transitions before giving up.
    status_update_retries: int = 3
    # Author recorded on history entries when the caller supplies none.
    default_author: str = "System"

    # Optional outbound webhook receiving deployment/approval domain events.
    notification_webhook_url: str | None = None
    notification_timeout_seconds: float = 5.0

    # Dashboard origins allowed by CORS.
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Insert the default checklist template set on startup when none exist.
    seed_checklist_templates: bool = True

    # Configure pydantic-settings to also load values from local .env file.
    class Config:
        env_file = ".env"

# Global settings instance imported by app modules at runtime.
settings = Settings()
