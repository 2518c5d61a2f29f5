"""
Enums and constants for the application.
"""
from enum import Enum


class FileClass(str, Enum):
    """Concrete kind of a file record."""
    FILE = "file"
    IMAGE = "image"
    FOLDER = "folder"


class Stage(str, Enum):
    """Versioning stages a file record can be read from or written to."""
    DRAFT = "draft"
    LIVE = "live"
