"""
Data access for file records across versioning stages.
"""
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Sequence

from sqlalchemy import String, func, inspect, literal_column, or_
from sqlmodel import Session, select

from filevault.core.config import settings
from filevault.core.exceptions import FileValidationError
from filevault.core.logging_config import log_debug
from filevault.core.time_utils import utc_now
from filevault.models.enums import FileClass, Stage
from filevault.models.file import FileRecord, FileRecordBase, FileRecordLive, FileRecordVersion
from filevault.services.versioning import VersioningService
from filevault.utils.pagination import DEFAULT_CHUNK_SIZE, ChunkedScan, chunked

# Column holding the flat-layout path in databases upgraded from that layout
LEGACY_FILENAME_COLUMN = "filename"


class FileRepository:
    """
    Queries and writes file records on the current versioning stage.

    Writes validate records unless validation has been suspended, and append a
    history row. Deletes remove a record from every stage along with its history.
    """

    def __init__(
        self,
        session: Session,
        versioning: Optional[VersioningService] = None,
        allowed_extensions: Optional[Iterable[str]] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.session = session
        self.versioning = versioning or VersioningService(session)
        if allowed_extensions is None:
            allowed_extensions = settings.allowed_file_extensions
        self.allowed_extensions = {ext.lower() for ext in allowed_extensions if ext}
        self.chunk_size = chunk_size
        self.validation_enabled = True

    @property
    def model(self):
        """Table model for the current stage."""
        return self.versioning.model_for_stage()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def has_legacy_column(self) -> bool:
        """Check whether the draft table still carries the legacy filename column."""
        inspector = inspect(self.session.connection())
        table = FileRecord.__tablename__
        if not inspector.has_table(table):
            return False
        return any(column["name"] == LEGACY_FILENAME_COLUMN for column in inspector.get_columns(table))

    def legacy_filename_column(self):
        """Raw reference to the unmapped legacy filename column."""
        return literal_column(f'"{FileRecord.__tablename__}"."{LEGACY_FILENAME_COLUMN}"', String)

    def legacy_query(self, pending_only: bool = False):
        """
        Select draft records carrying a legacy filename.

        Rows are ``(FileRecord, legacy_filename)`` ordered by id. The legacy column
        is never cleared, so by default the result set does not shrink as records
        are migrated, which keeps offset pagination aligned during a migration
        scan. ``pending_only`` narrows it to records without stored content.
        """
        legacy_filename = self.legacy_filename_column()
        statement = (
            select(FileRecord, legacy_filename.label("legacy_filename"))
            .where(FileRecord.class_name != FileClass.FOLDER)
            .where(legacy_filename.is_not(None))
            .where(legacy_filename != "")
        )
        if pending_only:
            statement = statement.where(
                or_(FileRecord.file_filename.is_(None), FileRecord.file_filename == "")
            )
        return statement.order_by(FileRecord.id)

    def count_pending_legacy(self) -> int:
        """Count draft records that still need migrating."""
        if not self.has_legacy_column():
            return 0
        pending = self.legacy_query(pending_only=True).order_by(None).subquery()
        return self.session.exec(select(func.count()).select_from(pending)).one()

    def current_query(self):
        """Select records on the current stage that reference stored content, ordered by id."""
        model = self.model
        return (
            select(model)
            .where(model.class_name != FileClass.FOLDER)
            .where(model.file_filename.is_not(None))
            .where(model.file_filename != "")
            .order_by(model.id)
        )

    def chunk(self, statement) -> ChunkedScan:
        """Scan ``statement`` in pages of ``chunk_size``."""
        return chunked(self.session, statement, self.chunk_size)

    def get_by_id(self, record_id: int) -> Optional[FileRecordBase]:
        return self.session.get(self.model, record_id)

    def get_many(self, record_ids: Sequence[int]) -> List[FileRecordBase]:
        model = self.model
        if not record_ids:
            return []
        return list(
            self.session.exec(
                select(model).where(model.id.in_(list(record_ids))).order_by(model.id)
            ).all()
        )

    def generate_filename(self, record: FileRecordBase) -> str:
        """
        Build the logical filename of ``record`` from its folder ancestry.

        Example: a record named ``photo.jpg`` inside folder ``Uploads`` yields
        ``Uploads/photo.jpg``.

        Raises:
            FileValidationError: If the folder hierarchy contains a cycle
        """
        parts = [record.name]
        seen = {record.id}
        parent_id = record.parent_id
        while parent_id:
            if parent_id in seen:
                raise FileValidationError(f"Folder hierarchy of file {record.id} contains a cycle")
            seen.add(parent_id)
            parent = self.session.get(self.model, parent_id)
            if parent is None:
                break
            parts.append(parent.name)
            parent_id = parent.parent_id
        return "/".join(reversed(parts))

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def validate(self, record: FileRecordBase) -> None:
        """
        Validate a record before it is written.

        Raises:
            FileValidationError: If the name is empty, the extension is not allowed,
                or a non-folder record has no stored content
        """
        if not record.name or not record.name.strip():
            raise FileValidationError("File name is required")

        if record.is_folder:
            return

        extension = record.extension
        if extension not in self.allowed_extensions:
            raise FileValidationError(f"Extension '{extension}' is not allowed for {record.name}")

        if not record.file_filename:
            raise FileValidationError(f"File {record.name} has no stored content")

    @contextmanager
    def validation_suspended(self) -> Iterator[None]:
        """Write without validation inside the block; the previous setting is restored on exit."""
        previous = self.validation_enabled
        self.validation_enabled = False
        try:
            yield
        finally:
            self.validation_enabled = previous

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def write(self, record: FileRecordBase) -> int:
        """
        Validate and persist ``record``, appending a history row.

        Returns:
            The record id

        Raises:
            FileValidationError: If validation is enabled and the record is invalid
        """
        if self.validation_enabled:
            self.validate(record)

        stage = Stage.LIVE if isinstance(record, FileRecordLive) else Stage.DRAFT
        record.version += 1
        record.updated_at = utc_now()

        self.session.add(record)
        self.session.flush()
        self.versioning.record_version(record, stage)
        self.session.commit()
        self.session.refresh(record)
        return record.id

    def reclassify(self, record: FileRecordBase, new_class: FileClass) -> int:
        """
        Rewrite ``record`` as ``new_class`` under the same id.

        Returns:
            The record id
        """
        previous_class = FileClass(record.class_name)
        replacement = self.session.merge(record.reclassified(new_class))
        log_debug(
            "Reclassified file record",
            file_id=replacement.id,
            from_class=previous_class.value,
            to_class=FileClass(new_class).value,
        )
        return self.write(replacement)

    def delete(self, record: FileRecordBase) -> None:
        """
        Delete ``record`` from every stage together with its version history.
        """
        record_id = record.id
        for model in (FileRecord, FileRecordLive):
            row = self.session.get(model, record_id)
            if row is not None:
                self.session.delete(row)

        versions = self.session.exec(
            select(FileRecordVersion).where(FileRecordVersion.record_id == record_id)
        ).all()
        for version in versions:
            self.session.delete(version)

        self.session.commit()
        log_debug("Deleted file record from all stages", file_id=record_id, versions=len(versions))
