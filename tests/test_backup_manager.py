"""Tests for backup_manager.py module."""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path

import pytest

import backup_manager
from backup_manager import BackupKind, BackupManager, BackupNotFoundError, BackupRecord, build_manifest
from file_operations import remove_path
from operation_log import OperationLog
from tests.conftest import snapshot


@pytest.fixture
def manager(tmp_path: Path) -> BackupManager:
    manager = BackupManager(tmp_path / "backups", retention_days=30, session="test-session")
    manager.initialize()
    return manager


def test_disabled_manager_makes_no_backups(tmp_path: Path, fixture_dir: Path):
    manager = BackupManager(tmp_path / "backups", enabled=False)
    manager.initialize()

    assert manager.create_backup(str(fixture_dir)) is None
    assert not (tmp_path / "backups").exists()


def test_copy_backup_restores_deleted_tree(manager: BackupManager, fixture_dir: Path):
    """Deleting then restoring brings back every file with its content."""
    before = snapshot(fixture_dir)

    backup_id = manager.create_backup(str(fixture_dir))
    assert backup_id is not None
    record = manager.get(backup_id)
    assert record.kind is BackupKind.COPY
    assert record.size_bytes == 150
    assert Path(record.backup_path).name == f"{backup_id}.backup"

    remove_path(str(fixture_dir))
    assert snapshot(fixture_dir) == {}

    assert manager.restore_backup(backup_id) is True
    assert snapshot(fixture_dir) == before


def test_single_file_backup(manager: BackupManager, tmp_path: Path):
    target = tmp_path / "single.txt"
    target.write_text("keep me")

    backup_id = manager.create_backup(str(target))
    target.unlink()

    assert manager.restore_backup(backup_id)
    assert target.read_text() == "keep me"


def test_failed_copy_falls_back_to_manifest(manager: BackupManager, fixture_dir: Path, monkeypatch, caplog):
    """If the copy fails, a manifest is written and restoring it brings back directories only."""

    def broken_copy(source, target):
        os.makedirs(target)
        raise OSError("disk full")

    monkeypatch.setattr(backup_manager, "copy_tree", broken_copy)

    backup_id = manager.create_backup(str(fixture_dir))
    record = manager.get(backup_id)
    assert record.kind is BackupKind.MANIFEST

    with open(record.backup_path, encoding="utf-8") as f:
        manifest = json.load(f)
    assert manifest["type"] == "manifest"
    assert manifest["sourcePath"] == str(fixture_dir)
    assert {Path(e["path"]).name for e in manifest["files"]} == {"a.tmp", "b.cache", "nested", "c.log"}

    remove_path(str(fixture_dir))
    os.rmdir(fixture_dir)

    with caplog.at_level(logging.WARNING, logger="ultraclean.backup"):
        assert manager.restore_backup(backup_id) is True

    assert (fixture_dir / "nested").is_dir()
    assert snapshot(fixture_dir) == {}
    file_warnings = [r for r in caplog.records if "Cannot restore file content" in r.getMessage()]
    assert len(file_warnings) == 3


def test_oversized_target_gets_manifest(tmp_path: Path, fixture_dir: Path):
    manager = BackupManager(tmp_path / "backups", max_backup_size=100)
    manager.initialize()

    backup_id = manager.create_backup(str(fixture_dir))

    assert manager.get(backup_id).kind is BackupKind.MANIFEST
    assert Path(manager.get(backup_id).backup_path).is_file()


def test_unknown_backup_id(manager: BackupManager):
    with pytest.raises(BackupNotFoundError):
        manager.restore_backup("123-nothing")


def test_backup_ids_are_unique(manager: BackupManager, fixture_dir: Path):
    ids = {manager.create_backup(str(fixture_dir)) for _ in range(5)}
    assert len(ids) == 5
    assert None not in ids


def test_refuses_to_back_up_the_backup_root(manager: BackupManager, tmp_path: Path):
    assert manager.create_backup(str(manager.backup_root)) is None
    assert manager.create_backup(str(tmp_path)) is None


def test_retention_sweep(manager: BackupManager, fixture_dir: Path, tmp_path: Path):
    """Backups older than the retention window are deleted; newer ones stay."""
    old_id = manager.create_backup(str(fixture_dir))
    new_id = manager.create_backup(str(fixture_dir))
    old_path = manager.get(old_id).backup_path
    forty_days_ago = time.time() - 40 * 24 * 60 * 60
    os.utime(old_path, (forty_days_ago, forty_days_ago))
    (manager.backup_root / "notes.txt").write_text("not a backup")
    os.utime(manager.backup_root / "notes.txt", (forty_days_ago, forty_days_ago))

    deleted = manager.sweep_expired()

    assert deleted == [f"{old_id}.backup"]
    assert not os.path.exists(old_path)
    assert os.path.exists(manager.get(new_id).backup_path)
    assert (manager.backup_root / "notes.txt").exists()
    with pytest.raises(BackupNotFoundError):
        manager.get(old_id)


def test_fresh_backup_survives_sweep_even_if_source_is_old(manager: BackupManager, fixture_dir: Path):
    long_ago = time.time() - 365 * 24 * 60 * 60
    os.utime(fixture_dir, (long_ago, long_ago))

    backup_id = manager.create_backup(str(fixture_dir))

    assert manager.sweep_expired() == []
    assert os.path.exists(manager.get(backup_id).backup_path)


def test_security_report_round_trip(manager: BackupManager, fixture_dir: Path, tmp_path: Path):
    """A saved report lets a later session find and restore the backup."""
    log = OperationLog("test-session")
    log.emit(logging.LogRecord("ultraclean", logging.WARNING, __file__, 1, "careful", None, None))
    backup_id = manager.create_backup(str(fixture_dir))

    report_path = manager.save_report(log)

    assert report_path == manager.backup_root / "security-report-test-session.json"
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["session"] == "test-session"
    assert report["summary"]["warnings"] == 1
    assert report["summary"]["backups"] == 1
    assert report["backups"][0]["id"] == backup_id

    later = BackupManager(manager.backup_root, session="later")
    assert later.load_reports() == 1
    assert later.get(backup_id) == manager.get(backup_id)


def test_load_reports_ignores_expired_backups(manager: BackupManager, fixture_dir: Path):
    backup_id = manager.create_backup(str(fixture_dir))
    manager.save_report(OperationLog("test-session"))
    os.utime(manager.get(backup_id).backup_path, (0, 0))
    manager.sweep_expired()

    later = BackupManager(manager.backup_root)
    assert later.load_reports() == 0


def test_record_serialization():
    record = BackupRecord("1-a", "/x", "/b/1-a.backup", "delete", 1, 2, BackupKind.MANIFEST)
    assert record.to_dict()["kind"] == "manifest"
    assert BackupRecord.from_dict(record.to_dict()) == record


def test_build_manifest_for_file(tmp_path: Path):
    target = tmp_path / "f.bin"
    target.write_bytes(b"12345")
    manifest = build_manifest(str(target))
    assert manifest["files"] == [
        {"path": str(target), "isDirectory": False, "size": 5, "modified": target.stat().st_mtime}
    ]
