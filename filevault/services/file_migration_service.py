"""
Migrate file records from the flat storage layout to the content-addressed store.

Legacy records keep their flat path in the deprecated ``filename`` column and have
no stored content reference. A run:

1. migrates every legacy record (or queues it for deletion when invalid),
2. deletes queued records in batches once the scan is over,
3. asks the store to normalise every current record, live stage first.

Records are never created here, and the legacy column is never cleared, so the
job can be re-run safely: migrated records are skipped on the next pass.
"""
from pathlib import Path
from typing import List, Optional, Union

from sqlmodel import Session

from filevault.core.config import settings
from filevault.core.environment import increase_memory_limit_to, increase_time_limit_to
from filevault.core.exceptions import AssetStoreCapabilityError, FileRecordNotFoundError
from filevault.core.logging_config import log_migration, log_warning
from filevault.models.enums import Stage
from filevault.models.file import FileRecord, class_for_extension
from filevault.schemas.migration import MigrationOptions, MigrationStats
from filevault.services.asset_store import AssetStore, NormalisedPath, get_asset_store, supports_normalisation
from filevault.services.file_repository import FileRepository
from filevault.services.versioning import VersioningService, versioned_mode


class FileMigrationService:
    """Migrate legacy file records and normalise stored file paths."""

    def __init__(
        self,
        session: Session,
        options: Optional[MigrationOptions] = None,
        store: Optional[AssetStore] = None,
        versioning: Optional[VersioningService] = None,
    ):
        """
        Initialize migration.

        Args:
            session: Database session
            options: Allow-list, deletion policy and batch sizes (defaults to settings)
            store: Asset store to normalise into (defaults to the configured store)
            versioning: Stage access (defaults to ``VERSIONING_ENABLED``)
        """
        self.session = session
        self.options = options or MigrationOptions.from_settings()
        self.store = store
        self.versioning = versioning or VersioningService(session)
        self.repository = FileRepository(
            session,
            versioning=self.versioning,
            allowed_extensions=self.options.allowed_extensions,
            chunk_size=self.options.chunk_size,
        )
        self.stats = MigrationStats()

        # Ids of invalid legacy records, deleted after the scan so the pages stay aligned
        self.legacy_file_ids_to_delete: List[int] = []

    def run(self, base: Optional[Union[str, Path]] = None) -> int:
        """
        Perform the migration.

        Args:
            base: Absolute path the legacy filenames are relative to.
                Defaults to ``PUBLIC_ROOT``.

        Returns:
            Number of files migrated plus number of files normalised

        Raises:
            AssetStoreCapabilityError: If the asset store cannot normalise paths
        """
        store = self.store if self.store is not None else get_asset_store()
        if not supports_normalisation(store):
            raise AssetStoreCapabilityError(
                "Can not run the file migration if the asset store does not have a `normalise_path` method."
            )
        self.store = store

        if not base:
            base = settings.public_root
        base = Path(base)

        increase_time_limit_to(self.options.time_limit_seconds)
        increase_memory_limit_to(self.options.memory_limit_mb)

        log_migration("MIGRATING LEGACY FILES")
        legacy_count = self.migrate_legacy_files(base)

        log_migration("NORMALISING CURRENT FILES")
        normalised_count = 0
        if self.versioning.enabled:
            log_migration("Looking at live files")
            with versioned_mode(Stage.LIVE):
                normalised_count += self.normalise_all_files("on the live stage")

            log_migration("Looking at draft files")
            with versioned_mode(Stage.DRAFT):
                normalised_count += self.normalise_all_files("on the draft stage")
        else:
            normalised_count = self.normalise_all_files("")

        if normalised_count > 0:
            log_migration(f"{normalised_count} files were normalised")
        else:
            log_migration("No files needed to be normalised")

        return legacy_count + normalised_count

    def migrate_legacy_files(self, base: Path) -> int:
        """
        Migrate every draft record carrying a legacy filename.

        Returns:
            Number of records migrated
        """
        if not self.repository.has_legacy_column():
            log_migration("No legacy filename column found, nothing to migrate")
            return 0

        count = 0
        stage = Stage.DRAFT if self.versioning.enabled else None
        with versioned_mode(stage):
            for record, legacy_filename in self.repository.chunk(self.repository.legacy_query()):
                if record.file_filename:
                    self.stats.already_migrated += 1
                    continue
                if self.migrate_file(base, record, legacy_filename):
                    count += 1

            deleted_count = self.delete_invalid_legacy_files()

        if count > 0:
            log_migration(f"{count} legacy files have been migrated.")
        else:
            log_migration("No legacy files have been migrated.")

        if deleted_count > 0:
            log_migration(f"{deleted_count} invalid legacy files have been deleted from the database.")

        return count

    def migrate_file(self, base: Path, record: FileRecord, legacy_filename: str) -> bool:
        """
        Migrate a single file.

        Args:
            base: Absolute path legacy filenames are relative to
            record: Draft record to migrate
            legacy_filename: Raw value of the legacy filename column

        Returns:
            True if this file was migrated
        """
        # Make sure the legacy file actually exists
        if not (Path(base) / legacy_filename).exists():
            self.stats.missing_source += 1
            return False

        extension = record.extension
        if extension not in set(self.options.allowed_extensions):
            if self.options.delete_invalid_files:
                self.legacy_file_ids_to_delete.append(record.id)
            self.stats.invalid_extension += 1
            return False

        if not self.validate_file_class(record, extension):
            # A legacy record has no stored content yet, so it can't pass validation
            with self.repository.validation_suspended():
                record_id = self.repository.reclassify(record, class_for_extension(extension))
            record = self.repository.get_by_id(record_id)
            if record is None:
                raise FileRecordNotFoundError(f"File record {record_id} disappeared after reclassification")
            self.stats.reclassified += 1

        filename = self.repository.generate_filename(record)
        results = self.store.normalise_path(filename)
        if results is None:
            log_warning(
                f"Legacy file {legacy_filename} could not be found in the asset store",
                file_id=record.id,
                filename=filename,
            )
            self.stats.unresolved += 1
            return False

        record.file_filename = results.filename
        record.file_hash = results.hash
        self.repository.write(record)
        if self.versioning.enabled:
            self.versioning.copy_version_to_stage(record, Stage.DRAFT, Stage.LIVE)

        log_migration(f"* Legacy file {record.file_filename} converted to SS4 format")
        self._log_operations(results)
        self.stats.migrated += 1
        return True

    def delete_invalid_legacy_files(self) -> int:
        """
        Delete the records queued by ``migrate_file``.

        Records go through the repository so their live rows and history are
        removed with them.

        Returns:
            Number of records deleted
        """
        record_ids = self.legacy_file_ids_to_delete
        self.legacy_file_ids_to_delete = []

        deleted = 0
        batch_size = self.options.delete_batch_size
        for start in range(0, len(record_ids), batch_size):
            for record in self.repository.get_many(record_ids[start:start + batch_size]):
                self.repository.delete(record)
                deleted += 1

        self.stats.deleted += deleted
        return deleted

    def normalise_all_files(self, stage_label: str) -> int:
        """
        Ask the store to normalise every current record on the current stage.

        Record values are left untouched; only the physical location may change.

        Returns:
            Number of records whose content was moved
        """
        count = 0
        for record in self.repository.chunk(self.repository.current_query()):
            results = self.store.normalise(record.file_filename, record.file_hash)
            if results and results.operations:
                log_migration(f"* {record.file_filename} has been normalised {stage_label}".rstrip())
                self._log_operations(results)
                count += 1

        self.stats.normalised += count
        return count

    def validate_file_class(self, record: FileRecord, extension: str) -> bool:
        """Check if a record's class is the one expected for its extension."""
        return record.class_name == class_for_extension(extension)

    def _log_operations(self, results: NormalisedPath) -> None:
        for origin, destination in results.operations.items():
            log_migration(f"  * {origin} moved to {destination}")
