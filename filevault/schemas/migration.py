"""
Legacy file migration schemas.
"""
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator

from filevault.core.config import Settings, settings
from filevault.utils.pagination import DEFAULT_CHUNK_SIZE

DEFAULT_DELETE_BATCH_SIZE = 100


class MigrationOptions(BaseModel):
    """Explicit configuration for a migration run."""
    allowed_extensions: List[str]
    delete_invalid_files: bool = True
    chunk_size: int = Field(DEFAULT_CHUNK_SIZE, gt=0)
    delete_batch_size: int = Field(DEFAULT_DELETE_BATCH_SIZE, gt=0)
    time_limit_seconds: Optional[int] = Field(None, gt=0)
    memory_limit_mb: Optional[int] = Field(None, gt=0)

    @field_validator('allowed_extensions')
    @classmethod
    def normalise_extensions(cls, v: List[str]) -> List[str]:
        """Lower-case and drop empty entries and leading dots."""
        return [ext.strip().lstrip(".").lower() for ext in v if ext and ext.strip().lstrip(".")]

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None, **overrides) -> "MigrationOptions":
        """Build options from application settings, with keyword overrides."""
        config = config or settings
        values = {
            "allowed_extensions": config.allowed_file_extensions,
            "delete_invalid_files": config.delete_invalid_files,
            "time_limit_seconds": config.migration_time_limit_seconds,
            "memory_limit_mb": config.migration_memory_limit_mb,
        }
        values.update(overrides)
        return cls(**values)


class MigrationStats(BaseModel):
    """Counters collected during a migration run."""
    migrated: int = 0
    already_migrated: int = 0
    missing_source: int = 0
    invalid_extension: int = 0
    reclassified: int = 0
    unresolved: int = 0
    deleted: int = 0
    normalised: int = 0

    @computed_field
    @property
    def total(self) -> int:
        """Records migrated or normalised."""
        return self.migrated + self.normalised
