"""
Application configuration using pydantic-settings.
"""
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_URL = "sqlite:////data/filevault.db"
DEFAULT_PUBLIC_ROOT = "/data/public"

# Extensions a stored file may carry. Files without an extension are rejected.
DEFAULT_ALLOWED_EXTENSIONS = [
    "ace", "arc", "arj", "asf", "au", "avi", "bmp", "bz2", "cab", "cda", "csv", "dmg", "doc",
    "docx", "dotx", "flv", "gif", "gpx", "gz", "hqx", "ico", "jpeg", "jpg", "kml", "m4a", "m4v",
    "mid", "midi", "mkv", "mov", "mp3", "mp4", "mpa", "mpeg", "mpg", "ogg", "ogv", "pages",
    "pcx", "pdf", "png", "pps", "ppt", "pptx", "potx", "ra", "ram", "rm", "rtf", "sit", "sitx",
    "tar", "tgz", "tif", "tiff", "txt", "wav", "webm", "webp", "wma", "wmv", "xls", "xlsx",
    "xltx", "zip", "zipx",
]

ASSET_STORE_BACKENDS = ("hash", "flat")

# Define the project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent.resolve()


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "FileVault"
    app_version: str = "0.1.0"
    environment: str = "development"

    # Database Configuration
    database_url: str = DEFAULT_SQLITE_URL

    # File Storage
    public_root: str = DEFAULT_PUBLIC_ROOT  # Parent of the assets folder
    assets_dir: str = "assets"
    asset_store_backend: str = "hash"
    allowed_file_extensions: Optional[List[str]] = None

    # Versioning
    versioning_enabled: bool = True

    # Legacy migration
    delete_invalid_files: bool = True
    migration_time_limit_seconds: Optional[int] = None  # None raises to the hard limit
    migration_memory_limit_mb: Optional[int] = None

    # Logging
    log_level: str = "INFO"
    log_dir: str = "/data/logs"
    log_sql_requests: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def database_type(self) -> str:
        """Detect database type from configuration."""
        if self.database_url.startswith(("postgresql", "postgres")):
            return "postgresql"
        return "sqlite"

    @property
    def asset_root(self) -> Path:
        """Absolute root of the asset store."""
        return Path(self.public_root) / self.assets_dir

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate primary database URL."""
        if not v or not v.strip():
            logger.info(
                "DATABASE_URL not provided; defaulting to SQLite at %s", DEFAULT_SQLITE_URL
            )
            return DEFAULT_SQLITE_URL

        url = v.strip()
        if url.startswith(("sqlite", "postgresql", "postgres")):
            return url

        logger.warning(
            "DATABASE_URL uses unsupported or untested dialect '%s'. Proceed with caution.",
            url.split("://", 1)[0]
        )
        return url

    @field_validator('assets_dir')
    @classmethod
    def validate_assets_dir(cls, v: str) -> str:
        """Assets directory must be a single relative path segment."""
        v = v.strip().strip("/")
        if not v or "/" in v or "\\" in v or v == "..":
            raise ValueError("ASSETS_DIR must be a single directory name, e.g. 'assets'")
        return v

    @field_validator('asset_store_backend')
    @classmethod
    def validate_asset_store_backend(cls, v: str) -> str:
        """Validate ASSET_STORE_BACKEND is a known backend."""
        v = v.strip().lower()
        if v not in ASSET_STORE_BACKENDS:
            raise ValueError(
                f"ASSET_STORE_BACKEND must be one of {', '.join(ASSET_STORE_BACKENDS)}, got '{v}'"
            )
        return v

    @field_validator('allowed_file_extensions', mode='before')
    @classmethod
    def parse_list_fields(cls, v):
        """Parse list fields from string or list."""
        if v is None:
            return None

        if isinstance(v, str):
            if not v.strip():
                return None
            # Remove brackets if present
            v = v.strip('[]')
            return [item.strip().strip('"').strip("'") for item in v.split(',') if item.strip()]

        if isinstance(v, list):
            return v

        return None

    @field_validator('allowed_file_extensions')
    @classmethod
    def validate_allowed_file_extensions(cls, v: Optional[List[str]]) -> List[str]:
        """Provide defaults and normalise to lower-case extensions without a leading dot."""
        if v is None or not v:
            return list(DEFAULT_ALLOWED_EXTENSIONS)
        return [ext.strip().lstrip(".").lower() for ext in v if ext.strip().lstrip(".")]

    @field_validator('migration_time_limit_seconds', 'migration_memory_limit_mb')
    @classmethod
    def validate_limits(cls, v: Optional[int], info: ValidationInfo) -> Optional[int]:
        """Resource limits must be positive when provided."""
        if v is not None and v <= 0:
            raise ValueError(f"{info.field_name.upper()} must be a positive integer")
        return v


# Create settings instance
settings = Settings()
