"""QR Feedback settings."""

from typing import Literal, Optional

from pydantic_settings import BaseSettings

Backend = Literal["memory", "local", "http", "sql"]


class Settings(BaseSettings):
    # Printed into QR codes: {public_base_url}/feedback/{id}
    public_base_url: str = "http://localhost:3000"

    database_url: str = "sqlite+aiosqlite:///./qr_feedback.db"

    # Where QR codes and feedback are authoritatively stored
    qr_backend: Backend = "sql"
    feedback_backend: Backend = "sql"

    # Base URL of the /api/db document facade, used by the "http" backend
    facade_url: str = "http://localhost:8000/api/db"

    # Local copies (offline fallback + pending writes). None keeps them in memory.
    local_storage_dir: Optional[str] = ".qr_feedback"
    local_storage_quota_bytes: int = 5 * 1024 * 1024

    cache_ttl_seconds: float = 180.0

    retry_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_backoff_factor: float = 2.0
    operation_timeout_seconds: float = 15.0

    sync_interval_seconds: float = 30.0

    default_expiry_hours: float = 24.0
    default_max_scans: int = 100

    log_level: str = "INFO"
    debug: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
