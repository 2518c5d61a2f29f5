"""
Unit tests for FileMigrationService.

Legacy records point at ``assets/<folders>/<name>`` below the public root; the
hash store is rooted at ``<public root>/assets``.
"""
import hashlib
import logging

import pytest
from sqlmodel import select

from filevault.core.exceptions import AssetStoreCapabilityError
from filevault.models import FileClass, FileRecord, FileRecordLive, Stage
from filevault.schemas.migration import MigrationOptions
from filevault.services.asset_store import FlatAssetStore
from filevault.services.file_migration_service import FileMigrationService
from filevault.services.versioning import VersioningService, get_reading_mode

ALLOWED = ["jpg", "png", "gif", "pdf", "txt", "docx"]
CONTENT = b"content"
CONTENT_HASH = hashlib.sha256(CONTENT).hexdigest()


@pytest.fixture(autouse=True)
def no_resource_limits(monkeypatch):
    """Keep tests from touching the process resource limits."""
    calls = []
    monkeypatch.setattr(
        "filevault.services.file_migration_service.increase_time_limit_to",
        lambda seconds=None: calls.append(("time", seconds)) or False,
    )
    monkeypatch.setattr(
        "filevault.services.file_migration_service.increase_memory_limit_to",
        lambda megabytes=None: calls.append(("memory", megabytes)) or False,
    )
    return calls


def _service(session, store, versioning_enabled=True, **options):
    values = {"allowed_extensions": ALLOWED, "chunk_size": 2}
    values.update(options)
    return FileMigrationService(
        session,
        options=MigrationOptions(**values),
        store=store,
        versioning=VersioningService(session, enabled=versioning_enabled),
    )


class TestLegacyMigration:
    def test_migrates_file_and_publishes_to_live(
        self, legacy_db, hash_store, public_root, asset_root, folder_factory, legacy_file_factory
    ):
        uploads = folder_factory("Uploads")
        record = legacy_file_factory("photo.jpg", parent=uploads, class_name=FileClass.IMAGE, folder_path="Uploads")
        service = _service(legacy_db, hash_store)

        total = service.run(public_root)

        assert total == 1
        assert service.stats.migrated == 1
        assert service.stats.normalised == 0

        draft = legacy_db.get(FileRecord, record.id)
        assert draft.file_filename == "Uploads/photo.jpg"
        assert draft.file_hash == CONTENT_HASH

        live = legacy_db.get(FileRecordLive, record.id)
        assert live is not None
        assert live.file_filename == "Uploads/photo.jpg"
        assert live.file_hash == CONTENT_HASH

        assert (asset_root / "Uploads" / CONTENT_HASH[:10] / "photo.jpg").read_bytes() == CONTENT
        assert not (asset_root / "Uploads" / "photo.jpg").exists()

    def test_logs_conversion_and_moves(self, legacy_db, hash_store, public_root, legacy_file_factory, caplog):
        legacy_file_factory("report.pdf")
        service = _service(legacy_db, hash_store)

        with caplog.at_level(logging.INFO, logger="filevault.migration"):
            service.run(public_root)

        messages = [r.getMessage() for r in caplog.records if r.name == "filevault.migration"]
        assert "* Legacy file report.pdf converted to SS4 format" in messages
        assert f"  * report.pdf moved to {CONTENT_HASH[:10]}/report.pdf" in messages
        assert "1 legacy files have been migrated." in messages
        assert "No files needed to be normalised" in messages

    def test_migrates_every_page(self, legacy_db, hash_store, public_root, legacy_file_factory):
        records = [legacy_file_factory(f"doc-{index}.pdf", content=f"doc {index}".encode()) for index in range(5)]
        service = _service(legacy_db, hash_store, chunk_size=2)

        assert service.run(public_root) == 5
        for record in records:
            assert legacy_db.get(FileRecord, record.id).file_filename == record.name

    def test_skips_missing_source_file(self, legacy_db, hash_store, public_root, legacy_file_factory):
        record = legacy_file_factory("gone.pdf", content=None)
        service = _service(legacy_db, hash_store)

        assert service.run(public_root) == 0
        assert service.stats.missing_source == 1
        assert legacy_db.get(FileRecord, record.id).file_filename is None

    def test_deletes_disallowed_extensions(self, legacy_db, hash_store, public_root, legacy_file_factory):
        invalid_id = legacy_file_factory("virus.exe").id
        valid_id = legacy_file_factory("report.pdf").id
        service = _service(legacy_db, hash_store)

        assert service.run(public_root) == 1
        assert service.stats.invalid_extension == 1
        assert service.stats.deleted == 1
        assert legacy_db.get(FileRecord, invalid_id) is None
        assert legacy_db.get(FileRecord, valid_id) is not None
        assert (public_root / "assets" / "virus.exe").exists()

    def test_deletes_in_batches(self, legacy_db, hash_store, public_root, legacy_file_factory):
        for index in range(5):
            legacy_file_factory(f"bad-{index}.exe")
        service = _service(legacy_db, hash_store, delete_batch_size=2)

        service.run(public_root)

        assert service.stats.deleted == 5
        assert service.legacy_file_ids_to_delete == []
        assert legacy_db.exec(select(FileRecord)).all() == []

    def test_keeps_disallowed_extensions_when_configured(
        self, legacy_db, hash_store, public_root, legacy_file_factory
    ):
        invalid = legacy_file_factory("virus.exe")
        service = _service(legacy_db, hash_store, delete_invalid_files=False)

        assert service.run(public_root) == 0
        assert service.stats.invalid_extension == 1
        assert service.stats.deleted == 0
        kept = legacy_db.get(FileRecord, invalid.id)
        assert kept is not None
        assert kept.file_filename is None

    def test_reclassifies_image_extension(self, legacy_db, hash_store, public_root, legacy_file_factory):
        record = legacy_file_factory("photo.jpg", class_name=FileClass.FILE)
        service = _service(legacy_db, hash_store)

        service.run(public_root)

        migrated = legacy_db.get(FileRecord, record.id)
        assert service.stats.reclassified == 1
        assert migrated.class_name == FileClass.IMAGE
        assert migrated.file_filename == "photo.jpg"
        assert legacy_db.get(FileRecordLive, record.id).class_name == FileClass.IMAGE

    def test_reclassifies_image_with_document_extension(
        self, legacy_db, hash_store, public_root, legacy_file_factory
    ):
        record = legacy_file_factory(
            "notes.pdf", class_name=FileClass.IMAGE, image_width=800, image_height=600
        )
        service = _service(legacy_db, hash_store)

        service.run(public_root)

        migrated = legacy_db.get(FileRecord, record.id)
        assert migrated.class_name == FileClass.FILE
        assert migrated.image_width is None
        assert migrated.image_height is None

    def test_content_not_found_in_store_is_unresolved(
        self, legacy_db, hash_store, public_root, folder_factory, legacy_file_factory
    ):
        uploads = folder_factory("Uploads")
        record = legacy_file_factory("photo.jpg", parent=uploads, class_name=FileClass.IMAGE, folder_path="Elsewhere")
        service = _service(legacy_db, hash_store)

        assert service.run(public_root) == 0
        assert service.stats.unresolved == 1
        assert legacy_db.get(FileRecord, record.id).file_filename is None

    def test_second_run_is_a_no_op(self, legacy_db, hash_store, public_root, legacy_file_factory):
        legacy_file_factory("report.pdf")
        _service(legacy_db, hash_store).run(public_root)

        second = _service(legacy_db, hash_store)

        assert second.run(public_root) == 0
        assert second.stats.already_migrated == 1
        assert second.stats.migrated == 0
        assert second.stats.normalised == 0

    def test_without_versioning_only_draft_is_written(
        self, legacy_db, hash_store, public_root, legacy_file_factory
    ):
        record = legacy_file_factory("report.pdf")
        service = _service(legacy_db, hash_store, versioning_enabled=False)

        assert service.run(public_root) == 1
        assert legacy_db.get(FileRecord, record.id).file_filename == "report.pdf"
        assert legacy_db.get(FileRecordLive, record.id) is None

    def test_reading_mode_restored_after_run(self, legacy_db, hash_store, public_root, legacy_file_factory):
        legacy_file_factory("report.pdf")

        _service(legacy_db, hash_store).run(public_root)

        assert get_reading_mode() == Stage.DRAFT


class TestNormalisation:
    def _current_record(self, session, asset_root, publish=True):
        path = asset_root / "Docs" / "report.pdf"
        path.parent.mkdir(parents=True)
        path.write_bytes(CONTENT)

        record = FileRecord(name="report.pdf", file_filename="Docs/report.pdf", file_hash=CONTENT_HASH)
        session.add(record)
        session.commit()
        session.refresh(record)
        if publish:
            VersioningService(session, enabled=True).copy_version_to_stage(record, Stage.DRAFT, Stage.LIVE)
        return record

    def test_normalises_current_files_live_first(self, test_db, hash_store, public_root, asset_root, caplog):
        self._current_record(test_db, asset_root)
        service = _service(test_db, hash_store)

        with caplog.at_level(logging.INFO, logger="filevault.migration"):
            total = service.run(public_root)

        messages = [r.getMessage() for r in caplog.records if r.name == "filevault.migration"]
        assert total == 1
        assert service.stats.normalised == 1
        assert "* Docs/report.pdf has been normalised on the live stage" in messages
        assert "No legacy filename column found, nothing to migrate" in messages
        assert (asset_root / "Docs" / CONTENT_HASH[:10] / "report.pdf").exists()

    def test_normalises_draft_only_records(self, test_db, hash_store, public_root, asset_root):
        self._current_record(test_db, asset_root, publish=False)
        service = _service(test_db, hash_store)

        assert service.run(public_root) == 1
        assert (asset_root / "Docs" / CONTENT_HASH[:10] / "report.pdf").exists()

    def test_normalisation_leaves_records_untouched(self, test_db, hash_store, public_root, asset_root):
        record = self._current_record(test_db, asset_root)
        version = record.version
        service = _service(test_db, hash_store)

        service.run(public_root)

        reloaded = test_db.get(FileRecord, record.id)
        assert reloaded.file_filename == "Docs/report.pdf"
        assert reloaded.file_hash == CONTENT_HASH
        assert reloaded.version == version

    def test_canonical_files_are_not_counted(self, test_db, hash_store, public_root, asset_root, caplog):
        self._current_record(test_db, asset_root)
        _service(test_db, hash_store).run(public_root)
        second = _service(test_db, hash_store)
        caplog.clear()

        with caplog.at_level(logging.INFO, logger="filevault.migration"):
            assert second.run(public_root) == 0

        messages = [r.getMessage() for r in caplog.records if r.name == "filevault.migration"]
        assert second.stats.normalised == 0
        assert not any("has been normalised" in message for message in messages)
        assert not any("moved to" in message for message in messages)
        assert "No files needed to be normalised" in messages


class TestRunPreconditions:
    def test_requires_store_that_can_normalise(self, legacy_db, asset_root, public_root, legacy_file_factory):
        record = legacy_file_factory("report.pdf")
        service = _service(legacy_db, FlatAssetStore(asset_root))

        with pytest.raises(AssetStoreCapabilityError, match="normalise_path"):
            service.run(public_root)

        assert legacy_db.get(FileRecord, record.id).file_filename is None
        assert (public_root / "assets" / "report.pdf").exists()

    def test_raises_resource_limits(self, test_db, hash_store, public_root, no_resource_limits):
        service = _service(test_db, hash_store, time_limit_seconds=600, memory_limit_mb=1024)

        service.run(public_root)

        assert no_resource_limits == [("time", 600), ("memory", 1024)]

    def test_validate_file_class(self, test_db, hash_store):
        service = _service(test_db, hash_store)

        assert service.validate_file_class(FileRecord(name="a.jpg", class_name=FileClass.IMAGE), "jpg")
        assert not service.validate_file_class(FileRecord(name="a.jpg", class_name=FileClass.FILE), "jpg")
        assert service.validate_file_class(FileRecord(name="a.pdf", class_name=FileClass.FILE), "pdf")
