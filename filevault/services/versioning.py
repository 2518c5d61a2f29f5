"""
Draft/live staging for file records.

The reading mode decides which stage table queries read from and writes go to.
It is held in a context variable so a scoped switch never leaks into callers.
"""
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional, Type, Union

from sqlmodel import Session

from filevault.core.config import settings
from filevault.core.exceptions import FileRecordNotFoundError
from filevault.core.logging_config import log_debug
from filevault.models.enums import Stage
from filevault.models.file import FileRecord, FileRecordBase, FileRecordLive, FileRecordVersion

reading_mode_ctx: ContextVar[Stage] = ContextVar('reading_mode', default=Stage.DRAFT)

STAGE_MODELS = {
    Stage.DRAFT: FileRecord,
    Stage.LIVE: FileRecordLive,
}


def get_reading_mode() -> Stage:
    """Return the stage currently read from."""
    return reading_mode_ctx.get()


def set_reading_mode(mode: Union[Stage, str]) -> None:
    """Set the stage to read from."""
    reading_mode_ctx.set(Stage(mode))


def set_stage(stage: Union[Stage, str]) -> None:
    """Switch the current stage. Alias of ``set_reading_mode`` kept for call-site clarity."""
    set_reading_mode(stage)


@contextmanager
def versioned_mode(stage: Optional[Union[Stage, str]] = None) -> Iterator[Stage]:
    """
    Run a block with its own reading mode, optionally switching to ``stage``.

    Any stage switch made inside the block is undone on exit, including when
    the block raises.

    Example:
        with versioned_mode(Stage.LIVE):
            ...
    """
    original = get_reading_mode()
    try:
        if stage is not None:
            set_stage(stage)
        yield get_reading_mode()
    finally:
        set_reading_mode(original)


class VersioningService:
    """
    Stage-aware access to the draft and live file tables.
    """

    def __init__(self, session: Session, enabled: Optional[bool] = None):
        self.session = session
        self.enabled = settings.versioning_enabled if enabled is None else enabled

    def current_stage(self) -> Stage:
        """Stage used for reads and writes; always draft when versioning is off."""
        if not self.enabled:
            return Stage.DRAFT
        return get_reading_mode()

    def model_for_stage(self, stage: Optional[Stage] = None) -> Type[FileRecordBase]:
        """Return the table model backing ``stage`` (defaults to the current stage)."""
        if stage is None:
            stage = self.current_stage()
        return STAGE_MODELS[Stage(stage)]

    def record_version(self, record: FileRecordBase, stage: Stage) -> FileRecordVersion:
        """Append a history row for ``record`` as written to ``stage``."""
        version = FileRecordVersion(
            record_id=record.id,
            version=record.version,
            stage=stage,
            class_name=record.class_name,
            name=record.name,
            file_filename=record.file_filename,
            file_hash=record.file_hash,
        )
        self.session.add(version)
        return version

    def copy_version_to_stage(self, record: FileRecordBase, from_stage: Stage, to_stage: Stage) -> FileRecordBase:
        """
        Copy the state of ``record`` on ``from_stage`` over to ``to_stage``.

        Creates the target row when the record has never been written to that stage.

        Returns:
            The target stage row

        Raises:
            FileRecordNotFoundError: If the record does not exist on ``from_stage``
        """
        source_model = self.model_for_stage(from_stage)
        target_model = self.model_for_stage(to_stage)

        source = self.session.get(source_model, record.id)
        if source is None:
            raise FileRecordNotFoundError(f"File record {record.id} does not exist on the {Stage(from_stage).value} stage")

        values = source.field_values(exclude=("id",))
        target = self.session.get(target_model, record.id)
        if target is None:
            target = target_model(id=record.id, **values)
        else:
            for key, value in values.items():
                setattr(target, key, value)

        self.session.add(target)
        self.record_version(target, Stage(to_stage))
        self.session.commit()
        self.session.refresh(target)

        log_debug(
            "Copied file record between stages",
            file_id=record.id,
            from_stage=Stage(from_stage).value,
            to_stage=Stage(to_stage).value,
        )
        return target
