"""
File type and content helpers.

Handles extension parsing, checksum calculation and resampled-variant naming.
"""
import hashlib
from pathlib import Path, PurePosixPath
from typing import Iterator, Set

IMAGE_EXTENSIONS: Set[str] = {"jpg", "jpeg", "png", "gif", "webp", "bmp", "tiff", "svg", "heic"}

# Resampled variants are stored beside the original as "{stem}__{variant}{suffix}"
VARIANT_SEPARATOR = "__"

CHECKSUM_CHUNK_SIZE = 8192


def get_extension(filename: str) -> str:
    """
    Return the lower-cased extension of a filename without the leading dot.

    Args:
        filename: Bare name or relative path, e.g. ``Uploads/photo.JPG``

    Returns:
        Extension such as ``jpg``, or an empty string when there is none
    """
    return PurePosixPath(filename).suffix.lstrip(".").lower()


def calculate_checksum(file_path: Path) -> str:
    """
    Calculate SHA256 checksum of a file.

    Args:
        file_path: Path to file

    Returns:
        Hex string of SHA256 checksum

    Raises:
        FileNotFoundError: If file doesn't exist
        IOError: If file can't be read
    """
    sha256_hash = hashlib.sha256()

    with open(file_path, "rb") as f:
        # Read file in chunks to handle large files
        for chunk in iter(lambda: f.read(CHECKSUM_CHUNK_SIZE), b""):
            sha256_hash.update(chunk)

    return sha256_hash.hexdigest()


def is_variant_name(candidate: str, name: str) -> bool:
    """Check whether ``candidate`` names a resampled variant of ``name``."""
    original = PurePosixPath(name)
    prefix = f"{original.stem}{VARIANT_SEPARATOR}"
    return (
        candidate != name
        and candidate.startswith(prefix)
        and candidate.endswith(original.suffix)
        and len(candidate) > len(prefix) + len(original.suffix)
    )


def iter_variants(directory: Path, name: str) -> Iterator[Path]:
    """Yield variant files of ``name`` found directly inside ``directory``."""
    if not directory.is_dir():
        return
    for candidate in sorted(directory.iterdir()):
        if candidate.is_file() and is_variant_name(candidate.name, name):
            yield candidate
