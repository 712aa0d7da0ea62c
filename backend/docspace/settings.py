"""
Application Settings Management

Central configuration for the document workspace: remote catalog endpoint,
local cache budget, persistent store backend, lifecycle policies and logging.

IMPORTANT:
- Secrets and deployment-specific values come from environment variables
  (prefix DOCSPACE_) or a .env.local file at the project root.
- Tests build their own Settings instances instead of mutating the global one.
"""

from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# backend/docspace/settings.py -> backend/docspace/ -> backend/ -> project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

ENV_FILE = PROJECT_ROOT / ".env.local"

MIB = 1024 * 1024

STORE_TYPES = ("memory", "fake", "redis")
PERMANENT_DELETE_POLICIES = ("local_only", "remote")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ==================== Environment ====================
    # "local-dev" | "test" | "production"
    environment: str = "local-dev"
    debug: bool = True

    # ==================== Server ====================
    host: str = "127.0.0.1"
    port: int = 8000
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # ==================== Remote catalog ====================
    catalog_base_url: str = "http://localhost/api"
    catalog_timeout: float = 30.0

    # ==================== Local document cache ====================
    # Browser-style storage budget shared by every cached location
    cache_quota_bytes: int = 5 * MIB
    # Trash entries that survive quota eviction
    trash_min_retained: int = 50

    # ==================== Persistent store ====================
    # memory: process-local dict (single instance only)
    # fake:   fakeredis, no external service
    # redis:  real Redis instance
    store_type: str = "memory"

    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_index: int = 0
    redis_password: str | None = None
    redis_socket_timeout: int = 5
    redis_socket_connect_timeout: int = 5

    # ==================== Lifecycle policies ====================
    # Where restore sends entries that have no recorded original location
    restore_fallback_root: str = "office"
    # local_only: permanent delete only drops the cached trash entry
    # remote:     also deletes the object through the catalog
    permanent_delete_policy: str = "local_only"

    # ==================== Logging ====================
    logs_subdir: str = "logs"
    log_max_bytes: int = 20 * 1024 * 1024  # 20MB
    log_backup_count: int = 5

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        env_prefix="DOCSPACE_",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: list[str] | str) -> list[str]:
        if isinstance(value, str) and not value.startswith("["):
            return [o.strip() for o in value.split(",") if o.strip()]
        return value

    @model_validator(mode="after")
    def normalize_catalog_url(self) -> "Settings":
        """Strip the trailing slash so endpoint paths can be appended verbatim."""
        self.catalog_base_url = self.catalog_base_url.rstrip("/")
        return self

    # ==================== Validation ====================

    def validate_configuration(self) -> None:
        """
        Validate configuration settings

        Raises:
            ValueError: If configuration is invalid
        """
        if self.cache_quota_bytes <= 0:
            raise ValueError(f"cache_quota_bytes must be positive, got {self.cache_quota_bytes}")
        if self.trash_min_retained < 0:
            raise ValueError(f"trash_min_retained must be >= 0, got {self.trash_min_retained}")
        if self.store_type not in STORE_TYPES:
            raise ValueError(f"Unknown store_type '{self.store_type}', expected one of {STORE_TYPES}")
        if self.permanent_delete_policy not in PERMANENT_DELETE_POLICIES:
            raise ValueError(
                f"Unknown permanent_delete_policy '{self.permanent_delete_policy}', "
                f"expected one of {PERMANENT_DELETE_POLICIES}"
            )

    # ==================== Paths ====================

    @classmethod
    def get_project_root(cls) -> Path:
        return PROJECT_ROOT

    def get_logs_root(self) -> Path:
        """
        Log directory

        - local-dev/test: {project_root}/logs/
        - production: /app/logs/
        """
        if self.environment == "production":
            return Path("/app") / self.logs_subdir
        return self.get_project_root() / self.logs_subdir

    def is_local_dev(self) -> bool:
        """Check if running in local development mode."""
        return self.environment == "local-dev"


settings = Settings()
