"""
Asset stores map a logical ``(filename, hash)`` pair to a physical file.

Two layouts exist:
- flat: ``{asset_root}/{filename}``, the legacy layout
- hash-addressed: ``{asset_root}/{dir}/{hash[:10]}/{name}``

Resampled variants (``photo__FitWzYwXQ.jpg``) always live beside their original.
"""
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional

from filevault.core.config import Settings, settings
from filevault.core.exceptions import InvalidStoragePathError
from filevault.core.logging_config import log_storage, log_warning
from filevault.utils.file_types import calculate_checksum, iter_variants

DEFAULT_HASH_PREFIX_LENGTH = 10
MIN_HASH_DIR_LENGTH = 6
HEX_DIGITS = set("0123456789abcdef")


@dataclass
class NormalisedPath:
    """
    Result of normalising a stored file.

    ``operations`` maps each origin path to its destination, both relative to
    the asset root, in the order the moves happened.
    """
    filename: str
    hash: str
    operations: Dict[str, str] = field(default_factory=dict)


def clean_filename(filename: str) -> str:
    """Normalise a logical filename to a relative POSIX path."""
    cleaned = PurePosixPath(filename.replace("\\", "/").strip().lstrip("/"))
    if not cleaned.parts or ".." in cleaned.parts:
        raise InvalidStoragePathError(f"Invalid filename: '{filename}'")
    return str(cleaned)


class AssetStore(ABC):
    """
    Base asset store rooted at a directory on disk.
    """

    def __init__(self, asset_root: Path):
        self.asset_root = Path(asset_root).resolve()

    @abstractmethod
    def get_file_path(self, filename: str, file_hash: Optional[str]) -> str:
        """Return where the content for ``(filename, file_hash)`` is kept, relative to the root."""

    def get_full_path(self, relative_path: str) -> Path:
        """
        Get absolute path from relative path.

        Raises:
            InvalidStoragePathError: If the path escapes the asset root
        """
        full_path = (self.asset_root / relative_path).resolve()
        if full_path != self.asset_root and self.asset_root not in full_path.parents:
            raise InvalidStoragePathError(f"Path escapes asset root: '{relative_path}'")
        return full_path

    def exists(self, relative_path: str) -> bool:
        """Check if a file exists at ``relative_path``."""
        return self.get_full_path(relative_path).is_file()

    def _cleanup_empty_dirs(self, directory: Path) -> None:
        """
        Remove empty parent directories up to the asset root.

        Args:
            directory: Directory to start cleanup from
        """
        try:
            # Don't delete the asset root itself
            while directory != self.asset_root and directory.exists():
                if not any(directory.iterdir()):
                    directory.rmdir()
                    log_storage(f"Removed empty directory: {directory}")
                    directory = directory.parent
                else:
                    break
        except OSError as e:
            log_warning(f"Failed to cleanup empty directories: {e}")


class FlatAssetStore(AssetStore):
    """
    Legacy layout: content lives at its logical filename.

    This store has no addressing rules and so cannot normalise paths.
    """

    def get_file_path(self, filename: str, file_hash: Optional[str]) -> str:
        return clean_filename(filename)


class HashAssetStore(AssetStore):
    """
    Content-addressed layout.

    Storage path format: {dir}/{hash[:prefix_length]}/{name}

    Examples:
        - Uploads/photo.jpg  -> Uploads/a1b2c3d4e5/photo.jpg
        - report.pdf         -> 9f8e7d6c5b/report.pdf
    """

    def __init__(self, asset_root: Path, hash_prefix_length: int = DEFAULT_HASH_PREFIX_LENGTH):
        super().__init__(asset_root)
        if hash_prefix_length < MIN_HASH_DIR_LENGTH:
            raise ValueError(f"hash_prefix_length must be at least {MIN_HASH_DIR_LENGTH}")
        self.hash_prefix_length = hash_prefix_length

    def get_file_path(self, filename: str, file_hash: Optional[str]) -> str:
        filename = clean_filename(filename)
        if not file_hash:
            return filename
        path = PurePosixPath(filename)
        return str(path.parent / file_hash[:self.hash_prefix_length] / path.name)

    def normalise_path(self, filename: str) -> Optional[NormalisedPath]:
        """
        Move the content for ``filename`` to its canonical location.

        The content is looked up at its natural path first, then inside any hash
        directory beside it. Its hash is recalculated from the bytes on disk.

        Args:
            filename: Logical filename, e.g. ``Uploads/photo.jpg``

        Returns:
            The canonical filename and hash plus the moves performed (empty when
            already canonical), or None if no content could be found
        """
        filename = clean_filename(filename)
        source = self._find_content(filename)
        if source is None:
            log_warning(f"No stored content found for {filename}")
            return None

        file_hash = calculate_checksum(self.get_full_path(source))
        target = self.get_file_path(filename, file_hash)

        operations: Dict[str, str] = {}
        if source != target:
            self._move(source, target, operations)

        return NormalisedPath(filename=filename, hash=file_hash, operations=operations)

    def normalise(self, filename: str, file_hash: str) -> Optional[NormalisedPath]:
        """
        Ensure the content for ``(filename, file_hash)`` sits at its canonical location.

        Returns:
            The moves performed, or None if the content is already canonical or
            cannot be found
        """
        if not filename or not file_hash:
            return None

        filename = clean_filename(filename)
        target = self.get_file_path(filename, file_hash)
        if self.exists(target):
            return None

        source = self._find_content(filename, file_hash)
        if source is None:
            return None

        operations: Dict[str, str] = {}
        self._move(source, target, operations)
        return NormalisedPath(filename=filename, hash=file_hash, operations=operations)

    def _is_hash_dir(self, name: str) -> bool:
        return len(name) >= MIN_HASH_DIR_LENGTH and set(name) <= HEX_DIGITS

    def _candidates(self, filename: str) -> List[str]:
        """Locations that may hold the content for ``filename``, natural path first."""
        path = PurePosixPath(filename)
        candidates = []
        if self.exists(filename):
            candidates.append(filename)

        parent = self.get_full_path(str(path.parent))
        if parent.is_dir():
            for child in sorted(parent.iterdir()):
                if child.is_dir() and self._is_hash_dir(child.name) and (child / path.name).is_file():
                    candidates.append(str(path.parent / child.name / path.name))
        return candidates

    def _find_content(self, filename: str, file_hash: Optional[str] = None) -> Optional[str]:
        """
        Find where the content for ``filename`` is currently stored.

        When ``file_hash`` is given, only a location holding that content matches:
        a hash directory that is a prefix of the hash, or a natural path whose
        checksum equals it.
        """
        for candidate in self._candidates(filename):
            if file_hash is None:
                return candidate
            hash_dir = PurePosixPath(candidate).parent.name
            if candidate != filename and file_hash.startswith(hash_dir):
                return candidate
            if candidate == filename and calculate_checksum(self.get_full_path(candidate)) == file_hash:
                return candidate
        return None

    def _move(self, source: str, target: str, operations: Dict[str, str]) -> None:
        """
        Move a file and its resampled variants, recording each move in ``operations``.

        When the target already exists the source is a duplicate of the same
        content and is removed instead.
        """
        source_path = self.get_full_path(source)
        target_path = self.get_full_path(target)
        source_dir = source_path.parent

        moves = [(source_path, target_path)]
        for variant in iter_variants(source_dir, source_path.name):
            moves.append((variant, target_path.parent / variant.name))

        for origin, destination in moves:
            destination.parent.mkdir(parents=True, exist_ok=True)
            if destination.exists():
                origin.unlink()
            else:
                shutil.move(str(origin), str(destination))
            origin_rel = origin.relative_to(self.asset_root).as_posix()
            destination_rel = destination.relative_to(self.asset_root).as_posix()
            operations[origin_rel] = destination_rel
            log_storage(f"Moved {origin_rel} to {destination_rel}")

        self._cleanup_empty_dirs(source_dir)


ASSET_STORES = {
    "hash": HashAssetStore,
    "flat": FlatAssetStore,
}


def get_asset_store(config: Optional[Settings] = None) -> AssetStore:
    """Build the asset store configured by ``ASSET_STORE_BACKEND``."""
    config = config or settings
    store_cls = ASSET_STORES[config.asset_store_backend]
    return store_cls(config.asset_root)


def supports_normalisation(store: object) -> bool:
    """Check whether ``store`` can move content to canonical paths."""
    return isinstance(store, AssetStore) and callable(getattr(store, "normalise_path", None))
