"""
Pytest fixtures shared across the unit and CLI suites.

Every test gets its own in-memory SQLite database and a temporary public root
holding the ``assets`` folder.
"""
from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

import pytest
from sqlalchemy import text
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from filevault.models import FileClass, FileRecord
from filevault.services.asset_store import HashAssetStore


def _create_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def test_db():
    """Create an in-memory SQLite database for testing."""
    engine = _create_engine()
    session = Session(engine)
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def legacy_db(test_db: Session) -> Session:
    """Database whose file table still carries the legacy filename column."""
    test_db.connection().execute(text('ALTER TABLE "file" ADD COLUMN filename VARCHAR(255)'))
    test_db.commit()
    return test_db


@pytest.fixture
def public_root(tmp_path: Path) -> Path:
    """Create a temporary public root with an empty assets folder."""
    root = tmp_path / "public"
    (root / "assets").mkdir(parents=True)
    return root


@pytest.fixture
def asset_root(public_root: Path) -> Path:
    return public_root / "assets"


@pytest.fixture
def hash_store(asset_root: Path) -> HashAssetStore:
    return HashAssetStore(asset_root)


@pytest.fixture
def folder_factory(test_db: Session) -> Callable[..., FileRecord]:
    """
    Factory that creates folder records on the draft stage.
    """

    def _create(name: str, parent: Optional[FileRecord] = None) -> FileRecord:
        folder = FileRecord(
            class_name=FileClass.FOLDER,
            name=name,
            title=name,
            parent_id=parent.id if parent else None,
        )
        test_db.add(folder)
        test_db.commit()
        test_db.refresh(folder)
        return folder

    return _create


@pytest.fixture
def legacy_file_factory(legacy_db: Session, public_root: Path) -> Callable[..., FileRecord]:
    """
    Factory that creates a legacy draft record and, optionally, its file on disk.

    The legacy filename is ``assets/<folder path>/<name>``, relative to the public root.
    """

    def _create(
        name: str,
        parent: Optional[FileRecord] = None,
        class_name: FileClass = FileClass.FILE,
        content: Optional[bytes] = b"content",
        folder_path: str = "",
        **fields,
    ) -> FileRecord:
        record = FileRecord(
            class_name=class_name,
            name=name,
            title=name,
            parent_id=parent.id if parent else None,
            **fields,
        )
        legacy_db.add(record)
        legacy_db.commit()
        legacy_db.refresh(record)

        legacy_filename = "/".join(part for part in ("assets", folder_path, name) if part)
        legacy_db.connection().execute(
            text('UPDATE "file" SET filename = :filename WHERE id = :id'),
            {"filename": legacy_filename, "id": record.id},
        )
        legacy_db.commit()

        if content is not None:
            path = public_root / legacy_filename
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        return record

    return _create
