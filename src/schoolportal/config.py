from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str
    host: str = "127.0.0.1"
    port: int = 3100
    debug: bool = False
    cors_origins: list[str] = []
    qr_token_ttl_seconds: int = 5 * 60  # Lifetime of a QR login token
    qr_token_retention_seconds: int = 24 * 60 * 60  # How long used or expired tokens stay readable
    session_idle_timeout_seconds: int = 30 * 60  # Sliding idle window for sessions
    admin_username: str = "admin"
    admin_password: str | None = None  # Teacher-role admin is created on startup only when set
    # Build metadata injected during Docker build via environment variables
    git_commit_hash: str = "unknown"
    build_time: str = "unknown"

    model_config = {
        "env_file": [".env"],
        "env_prefix": "SCHOOLPORTAL_",
        "extra": "ignore",
    }
