"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Thresholds and durations are validated at load time.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> list[str]:
    """Split a comma-separated setting into trimmed, non-empty items."""
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment and .env.

    Everything has a default so the app can boot without a database: when
    DATABASE_URL is empty, audit persistence is disabled and the audit
    dependencies become no-ops.
    """

    # App
    app_name: str = "orgsuite"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Database (SQLAlchemy async; postgresql+asyncpg in production)
    database_url: str = ""
    database_echo: bool = False
    db_pool_size: int | None = None
    db_max_overflow: int | None = None
    # No migrations are shipped: create missing tables at startup
    database_create_tables: bool = True

    # CORS
    allowed_origins: str = "http://localhost:3000,http://localhost:8080"

    # Request / middleware
    correlation_id_header: str = "X-Correlation-ID"
    session_id_header: str = "X-Session-ID"
    session_id_cookie: str = "sessionId"

    # Logging: dedicated file for the app.security logger (empty = stdout only)
    security_log_file: str = ""

    # Audit log
    audit_retention_days: int = 90
    audit_export_limit: int = 10_000
    audit_suspicious_window_hours: int = 24
    audit_max_captured_body_bytes: int = 1024 * 1024  # 1MB
    audit_admin_role_ids: str = "1,2"

    # Redis (shared failed-login counters across instances)
    redis_enabled: bool = False
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: SecretStr | None = None

    # Brute-force protection
    brute_force_max_failed_attempts: int = 5
    brute_force_lockout_seconds: int = 15 * 60
    brute_force_idle_seconds: int = 24 * 60 * 60
    brute_force_sweep_interval_seconds: int = 60 * 60
    brute_force_key_prefix: str = "bf_protect:"
    brute_force_protected_paths: str = "/api/v1/auth/login,/api/v1/auth/register"
    brute_force_lockout_message: str = "คุณทำรายการผิดพลาดเกินกำหนด กรุณารอ 15 นาที"

    # Suspicious request detection
    suspicious_request_policy: str = "log"  # "log" or "block"
    suspicious_body_excerpt_length: int = 200
    suspicious_min_user_agent_length: int = 5

    # Request logger: 401s on these path fragments are expected traffic
    request_logger_expected_401_paths: str = "/auth/,/refresh"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_security_settings(self) -> "Settings":
        """Reject insecure or nonsensical security settings."""
        if self.allowed_origins.strip() == "*":
            raise ValueError(
                "allowed_origins must not be '*' (credentials are allowed). "
                "List explicit origins instead."
            )
        if self.debug and self.environment == "production":
            raise ValueError("debug must be False when environment is 'production'")
        if self.suspicious_request_policy not in ("log", "block"):
            raise ValueError(
                f"suspicious_request_policy must be 'log' or 'block', got: "
                f"{self.suspicious_request_policy!r}"
            )
        for name in (
            "brute_force_max_failed_attempts",
            "brute_force_lockout_seconds",
            "brute_force_idle_seconds",
            "brute_force_sweep_interval_seconds",
            "audit_retention_days",
            "audit_export_limit",
            "suspicious_body_excerpt_length",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")
        return self

    @property
    def allowed_origins_list(self) -> list[str]:
        return _split_csv(self.allowed_origins)

    @property
    def audit_admin_role_id_list(self) -> list[int]:
        return [int(v) for v in _split_csv(self.audit_admin_role_ids)]

    @property
    def brute_force_protected_path_list(self) -> list[str]:
        return _split_csv(self.brute_force_protected_paths)

    @property
    def request_logger_expected_401_path_list(self) -> list[str]:
        return _split_csv(self.request_logger_expected_401_paths)


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
