"""
File record models.

A file record exists once per versioning stage: ``file`` holds the draft state,
``file_live`` the published state. Every write appends a row to ``file_versions``.

Databases upgraded from the flat storage layout also carry a ``filename`` column
on ``file``. It is deliberately left unmapped; see ``FileRepository.legacy_query``.
"""
from datetime import datetime
from typing import Dict, Optional, Tuple

from sqlalchemy import Enum as SAEnum
from sqlmodel import Field, SQLModel, Index

from filevault.core.time_utils import utc_now
from filevault.utils.file_types import IMAGE_EXTENSIONS, get_extension
from .base import BaseModel
from .enums import FileClass, Stage

# Stored as VARCHAR so the draft and live tables can share the type
FILE_CLASS_TYPE = SAEnum(FileClass, name="file_class_enum", native_enum=False, length=20)
STAGE_TYPE = SAEnum(Stage, name="stage_enum", native_enum=False, length=20)

# Fields carried only by a given class; cleared when a record leaves that class.
VARIANT_FIELDS: Dict[FileClass, Tuple[str, ...]] = {
    FileClass.IMAGE: ("image_width", "image_height"),
}


def class_for_extension(extension: str) -> FileClass:
    """Return the class a record with the given extension should have."""
    if extension.lower().lstrip(".") in IMAGE_EXTENSIONS:
        return FileClass.IMAGE
    return FileClass.FILE


class FileRecordBase(BaseModel):
    """
    Columns shared by the draft and live file tables.
    """
    class_name: FileClass = Field(default=FileClass.FILE, sa_type=FILE_CLASS_TYPE, index=True)
    name: str = Field(max_length=255)
    title: Optional[str] = Field(default=None, max_length=255)
    parent_id: Optional[int] = Field(default=None, index=True)

    # Content-addressed storage reference
    file_filename: Optional[str] = Field(default=None, max_length=500)
    file_hash: Optional[str] = Field(default=None, max_length=64)

    # Image variant
    image_width: Optional[int] = Field(default=None, ge=0)
    image_height: Optional[int] = Field(default=None, ge=0)

    version: int = Field(default=0, ge=0)

    @property
    def extension(self) -> str:
        return get_extension(self.name)

    @property
    def is_folder(self) -> bool:
        return self.class_name == FileClass.FOLDER

    def field_values(self, exclude: Tuple[str, ...] = ()) -> Dict[str, object]:
        """Column values by field name, loading any attribute expired by a commit."""
        return {name: getattr(self, name) for name in type(self).model_fields if name not in exclude}

    def reclassified(self, new_class: FileClass):
        """
        Return a copy of this record under ``new_class``, keeping its identity.

        Variant fields the new class does not carry are cleared.
        """
        values = self.field_values()
        kept = VARIANT_FIELDS.get(new_class, ())
        for field in VARIANT_FIELDS.get(self.class_name, ()):
            if field not in kept:
                values[field] = None
        values["class_name"] = new_class
        return type(self)(**values)


class FileRecord(FileRecordBase, table=True):
    """
    File record on the draft stage.
    """
    __tablename__ = "file"

    id: Optional[int] = Field(default=None, primary_key=True)

    __table_args__ = (
        Index('idx_file_parent_name', 'parent_id', 'name'),
    )


class FileRecordLive(FileRecordBase, table=True):
    """
    Published copy of a file record. Shares its id with the draft row.
    """
    __tablename__ = "file_live"

    id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})


class FileRecordVersion(SQLModel, table=True):
    """
    History row written for every stage write of a file record.
    """
    __tablename__ = "file_versions"

    id: Optional[int] = Field(default=None, primary_key=True)
    record_id: int = Field(index=True)
    version: int = Field(ge=0)
    stage: Stage = Field(sa_type=STAGE_TYPE)
    class_name: FileClass = Field(sa_type=FILE_CLASS_TYPE)
    name: str = Field(max_length=255)
    file_filename: Optional[str] = Field(default=None, max_length=500)
    file_hash: Optional[str] = Field(default=None, max_length=64)
    written_at: datetime = Field(default_factory=utc_now)

    __table_args__ = (
        Index('idx_file_versions_record_version', 'record_id', 'version'),
    )
