# Import all models for easy access
from .base import BaseModel
from .enums import FileClass, Stage
from .file import FileRecord, FileRecordLive, FileRecordVersion, class_for_extension

__all__ = [
    "BaseModel",
    "FileClass",
    "Stage",
    "FileRecord",
    "FileRecordLive",
    "FileRecordVersion",
    "class_for_extension",
]
