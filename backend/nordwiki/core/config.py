"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class BlobBackend(str, Enum):
    """Where page blobs are stored."""
    MEMORY = "memory"
    LOCAL = "local"
    HTTP = "http"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Application settings with validation.

    Every value can be overridden by an environment variable of the same
    name (case-insensitive) or by a ``.env`` file in the working directory.
    List-valued settings are comma-separated strings, parsed by the
    ``get_*`` helpers.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration (collaboration state: revisions, sessions, comments...)
    database_url: str = Field(
        default="sqlite:///./nordwiki.db",
        description="Database connection URL"
    )
    db_pool_size: int = Field(default=5, description="Persistent database connections (PostgreSQL only)")
    db_max_overflow: int = Field(default=10, description="Extra connections allowed during bursts")
    db_pool_recycle: int = Field(default=1800, description="Seconds before a pooled connection is recycled")

    # Blob storage
    blob_backend: BlobBackend = Field(
        default=BlobBackend.MEMORY,
        description="Page blob store: memory, local (directory) or http (storage REST bucket)"
    )
    blob_local_root: str = Field(
        default="./wiki-data",
        description="Root directory for the local blob store"
    )
    blob_http_url: str = Field(
        default="",
        description="Base URL of the storage REST API, e.g. https://<project>.supabase.co/storage/v1"
    )
    blob_http_bucket: str = Field(default="wiki", description="Bucket holding the wiki blobs")
    blob_http_token: str = Field(default="", description="Bearer token for the storage REST API")
    blob_http_timeout: float = Field(default=30.0, description="Storage request timeout in seconds")

    # Structure discovery
    wiki_root_prefix: str = Field(
        default="",
        description="Prefix under which discovery starts ('' = bucket root)"
    )
    page_extension: str = Field(default=".md", description="File extension of page blobs")
    index_page_name: str = Field(
        default="README",
        description="File stem that gives a folder its own renderable content"
    )
    known_directories: str = Field(
        default="Nordics,Nordics/nations,Nordics/towns,Nordics/server-events",
        description="Directory prefixes probed when root listing finds nothing (comma-separated)"
    )
    known_files: str = Field(
        default=(
            "Nordics/README.md,Nordics/nations/README.md,Nordics/towns/README.md,"
            "Nordics/towns/garvia/README.md,Nordics/towns/northstar/README.md"
        ),
        description="Page paths fetched directly when directory probing finds nothing (comma-separated)"
    )
    alternate_root_prefixes: str = Field(
        default="the-world",
        description="Alternate root prefixes tried last (comma-separated)"
    )
    discovery_max_prefixes: int = Field(
        default=10000,
        description="Upper bound on prefixes listed in one discovery pass"
    )

    # Live entity registry (towns/nations statistics)
    live_registry_url: str = Field(
        default="",
        description="Endpoint returning live entity snapshots (empty = live overlay disabled)"
    )
    live_registry_token: str = Field(default="", description="Bearer token for the live registry")
    live_registry_timeout: float = Field(default=10.0, description="Live registry timeout in seconds")

    # Editing timers and session liveness
    heartbeat_interval_seconds: float = Field(default=30.0, description="Editor heartbeat period")
    conflict_poll_interval_seconds: float = Field(default=10.0, description="Editor conflict poll period")
    autosave_interval_seconds: float = Field(default=30.0, description="Editor auto-save period")
    session_liveness_seconds: float = Field(
        default=0.0,
        description="Seconds after the last heartbeat a session still counts as active (0 = 2x heartbeat)"
    )

    # Authentication
    # AUTH_ENABLED: when False, requests without identity headers act as an
    # anonymous admin. Identity itself is issued by the fronting gateway.
    auth_enabled: bool = Field(
        default=False,
        description="Require gateway identity headers on every request"
    )

    # Rate Limiting
    rate_limit_per_minute: int = Field(
        default=120,
        description="Maximum requests per client per minute"
    )
    write_rate_limit_per_minute: int = Field(
        default=30,
        description="Maximum saves, merges and other writes per client per minute (0 disables)"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    def get_cors_origins(self) -> List[str]:
        """
        Get CORS origins as a list.

        Parses comma-separated string and validates no wildcards.
        """
        origins = _split_csv(self.cors_allowed_origins)

        # SECURITY: Prevent wildcard CORS
        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    def get_known_directories(self) -> List[str]:
        return [d.strip("/") for d in _split_csv(self.known_directories)]

    def get_known_files(self) -> List[str]:
        return [f.strip("/") for f in _split_csv(self.known_files)]

    def get_alternate_root_prefixes(self) -> List[str]:
        return [p.strip("/") for p in _split_csv(self.alternate_root_prefixes)]

    @property
    def effective_session_liveness(self) -> float:
        """Liveness window in seconds; defaults to two missed heartbeats."""
        if self.session_liveness_seconds > 0:
            return self.session_liveness_seconds
        return 2 * self.heartbeat_interval_seconds

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('page_extension')
    @classmethod
    def validate_page_extension(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("page_extension cannot be empty")
        return v if v.startswith(".") else f".{v}"

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        Raises:
            ConfigurationError: If production config is insecure or incomplete.
        """
        errors: list[str] = []

        if not self.auth_enabled:
            errors.append(
                "AUTH_ENABLED is false. "
                "Gateway identity headers must be enforced in production."
            )

        if self.blob_backend == BlobBackend.MEMORY:
            errors.append(
                "BLOB_BACKEND is 'memory'. Pages would be lost on restart."
            )

        if self.blob_backend == BlobBackend.HTTP and not self.blob_http_url:
            errors.append("BLOB_BACKEND is 'http' but BLOB_HTTP_URL is empty.")

        localhost_origins = [o for o in self.get_cors_origins() if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            errors.append(
                f"CORS allows localhost origins: {localhost_origins}. "
                "Remove localhost origins for production."
            )

        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is invalid:\n  - " + "\n  - ".join(errors)
            )

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
