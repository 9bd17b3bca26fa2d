#!/usr/bin/env python3
"""
Backup and Restore Manager

Snapshots a cleanup target before it is deleted so the deletion can be
reversed. Each backup lives in the backup root as ``<id>.backup``:

- a full copy of the target (file or directory tree), or
- a JSON manifest listing names, sizes and modification times, written when
  the copy fails or the target is larger than the size limit.

Manifest backups cannot bring file contents back. Restoring one recreates the
directory structure and logs a warning for every file it could not restore.

A failed backup never blocks the cleanup: create_backup() logs the problem
and returns None, and the target is deleted without a safety net.
"""

import json
import logging
import os
import pathlib
import secrets
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from auxiliary import now_ms
from file_operations import copy_tree, discard, is_within, measure_tree, restore_tree
from operation_log import OperationLog

logger = logging.getLogger("ultraclean.backup")

BACKUP_SUFFIX = ".backup"
MANIFEST_TYPE = "manifest"
DAY_SECONDS = 24 * 60 * 60


class BackupKind(Enum):
    """How a backup stores the target"""

    COPY = "copy"
    MANIFEST = "manifest"


class BackupNotFoundError(KeyError):
    """No backup record with the requested id"""


@dataclass(frozen=True)
class BackupRecord:
    """A backup taken before a destructive operation"""

    id: str
    original_path: str
    backup_path: str
    operation: str
    timestamp_ms: int
    size_bytes: int
    kind: BackupKind = BackupKind.COPY

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "BackupRecord":
        return cls(
            id=data["id"],
            original_path=data["original_path"],
            backup_path=data["backup_path"],
            operation=data.get("operation", "delete"),
            timestamp_ms=int(data["timestamp_ms"]),
            size_bytes=int(data.get("size_bytes", 0)),
            kind=BackupKind(data.get("kind", BackupKind.COPY.value)),
        )


def build_manifest(source_path: str) -> dict:
    """Describe every entry below *source_path* without its contents"""
    manifest = {"type": MANIFEST_TYPE, "sourcePath": source_path, "timestamp": now_ms(), "files": []}

    if not os.path.isdir(source_path) or os.path.islink(source_path):
        st = os.lstat(source_path)
        manifest["files"].append(
            {"path": source_path, "isDirectory": False, "size": st.st_size, "modified": st.st_mtime}
        )
        return manifest

    for dirpath, dirnames, filenames in os.walk(source_path, followlinks=False):
        for name in dirnames + filenames:
            item_path = os.path.join(dirpath, name)
            try:
                st = os.lstat(item_path)
            except OSError:
                continue
            manifest["files"].append(
                {
                    "path": item_path,
                    "isDirectory": name in dirnames and not os.path.islink(item_path),
                    "size": st.st_size,
                    "modified": st.st_mtime,
                }
            )
    return manifest


class BackupManager:
    """Creates, restores and expires backups for one cleaner session"""

    def __init__(
        self,
        backup_root: pathlib.Path,
        enabled: bool = True,
        retention_days: int = 30,
        max_backup_size: int = 1024**3,
        session: Optional[str] = None,
    ):
        self.backup_root = pathlib.Path(backup_root)
        self.enabled = enabled
        self.retention_days = retention_days
        self.max_backup_size = max_backup_size
        self.session = session or str(now_ms())
        self.records: dict[str, BackupRecord] = {}

    def initialize(self):
        """Create the backup root and run the retention sweep"""
        if not self.enabled:
            return
        try:
            self.backup_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Failed to initialize backup: {e}", extra={"context": {"location": str(self.backup_root)}})
            return

        self.sweep_expired()
        logger.info(
            "Backup system initialized",
            extra={"context": {"location": str(self.backup_root), "maxSize": self.max_backup_size}},
        )

    # -- creating backups ---------------------------------------------------

    def _new_id(self) -> str:
        while True:
            backup_id = f"{now_ms()}-{secrets.token_hex(5)}"
            if backup_id not in self.records and not (self.backup_root / f"{backup_id}{BACKUP_SUFFIX}").exists():
                return backup_id

    def create_backup(self, target_path: str, operation: str = "delete") -> Optional[str]:
        """Back up *target_path* and return the backup id, or None if no backup was made"""
        if not self.enabled:
            return None

        if is_within(str(self.backup_root), target_path) or is_within(target_path, str(self.backup_root)):
            logger.error(
                "Failed to create backup: target overlaps the backup location",
                extra={"context": {"targetPath": target_path, "backupRoot": str(self.backup_root)}},
            )
            return None

        backup_id = self._new_id()
        backup_path = self.backup_root / f"{backup_id}{BACKUP_SUFFIX}"
        logger.info(
            f"Creating backup for {operation}",
            extra={"context": {"targetPath": target_path, "backupId": backup_id, "backupPath": str(backup_path)}},
        )

        try:
            kind = self._write_backup(target_path, backup_path)
            # Copies keep the source mtime; the retention sweep must see when the backup was made
            if not backup_path.is_symlink():
                now = time.time()
                os.utime(backup_path, (now, now))
        except OSError as e:
            logger.error(f"Failed to create backup: {e}", extra={"context": {"targetPath": target_path}})
            return None

        record = BackupRecord(
            id=backup_id,
            original_path=target_path,
            backup_path=str(backup_path),
            operation=operation,
            timestamp_ms=now_ms(),
            size_bytes=measure_tree(str(backup_path)).size,
            kind=kind,
        )
        self.records[backup_id] = record
        logger.info(
            f"Backup created: {backup_id}",
            extra={"context": {"originalPath": target_path, "backupPath": str(backup_path), "size": record.size_bytes}},
        )
        return backup_id

    def _write_backup(self, target_path: str, backup_path: pathlib.Path) -> BackupKind:
        size = measure_tree(target_path).size
        if size > self.max_backup_size:
            logger.warning(
                f"Target exceeds backup size limit, recording manifest only: {target_path}",
                extra={"context": {"size": size, "limit": self.max_backup_size}},
            )
            self._write_manifest(target_path, backup_path)
            return BackupKind.MANIFEST

        try:
            copy_tree(target_path, str(backup_path))
            return BackupKind.COPY
        except OSError as e:
            # shutil.Error is an OSError too; fall back to describing what was there
            logger.warning(
                f"Full copy failed, falling back to manifest: {e}",
                extra={"context": {"targetPath": target_path}},
            )
            discard(str(backup_path))
            self._write_manifest(target_path, backup_path)
            return BackupKind.MANIFEST

    def _write_manifest(self, target_path: str, backup_path: pathlib.Path):
        manifest = build_manifest(target_path)
        with backup_path.open("w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2)

    # -- restoring ----------------------------------------------------------

    def get(self, backup_id: str) -> BackupRecord:
        try:
            return self.records[backup_id]
        except KeyError:
            raise BackupNotFoundError(f"Backup not found: {backup_id}") from None

    def restore_backup(self, backup_id: str) -> bool:
        """Restore a backup to its original path.

        Raises BackupNotFoundError for an unknown id; any other failure is
        logged and reported as False.
        """
        record = self.get(backup_id)
        logger.info(
            f"Restoring from backup: {backup_id}",
            extra={"context": {"originalPath": record.original_path, "backupPath": record.backup_path}},
        )

        try:
            if record.kind is BackupKind.MANIFEST:
                self._restore_manifest(record)
            else:
                restore_tree(record.backup_path, record.original_path)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to restore backup: {e}", extra={"context": {"backupId": backup_id}})
            return False

        logger.info(f"Backup restored: {backup_id}", extra={"context": {"restoredPath": record.original_path}})
        return True

    def _restore_manifest(self, record: BackupRecord):
        with open(record.backup_path, encoding="utf-8") as f:
            manifest = json.load(f)
        if manifest.get("type") != MANIFEST_TYPE:
            raise ValueError(f"Not a manifest backup: {record.backup_path}")

        if os.path.isdir(manifest["sourcePath"]) or any(entry["isDirectory"] for entry in manifest["files"]):
            os.makedirs(manifest["sourcePath"], exist_ok=True)
        for entry in manifest["files"]:
            if entry["isDirectory"]:
                os.makedirs(entry["path"], exist_ok=True)
            else:
                logger.warning(
                    f"Cannot restore file content from manifest: {entry['path']}",
                    extra={"context": {"backupId": record.id, "size": entry.get("size", 0)}},
                )

    # -- retention ----------------------------------------------------------

    def sweep_expired(self, now: Optional[float] = None) -> list[str]:
        """Delete backups older than the retention window; returns the deleted names"""
        cutoff = (now if now is not None else time.time()) - self.retention_days * DAY_SECONDS
        deleted = []
        try:
            entries = list(os.scandir(self.backup_root))
        except OSError as e:
            logger.warning(f"Failed to cleanup old backups: {e}")
            return deleted

        for entry in entries:
            if not entry.name.endswith(BACKUP_SUFFIX):
                continue
            try:
                if entry.stat(follow_symlinks=False).st_mtime >= cutoff:
                    continue
                discard(entry.path)
            except OSError as e:
                logger.warning(f"Failed to remove old backup {entry.name}: {e}")
                continue
            deleted.append(entry.name)
            self.records = {k: r for k, r in self.records.items() if r.backup_path != entry.path}
            logger.info(f"Cleaned old backup: {entry.name}", extra={"context": {"path": entry.path}})
        return deleted

    # -- security report ----------------------------------------------------

    def save_report(self, operation_log: OperationLog, report_path: Optional[pathlib.Path] = None) -> Optional[pathlib.Path]:
        """Write the end-of-run security report with the log entries and backup records"""
        path = report_path or self.backup_root / f"security-report-{self.session}.json"
        report = {
            "session": self.session,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "summary": {**operation_log.summary(), "backups": len(self.records)},
            "operations": operation_log.entries,
            "backups": [record.to_dict() for record in self.records.values()],
        }
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as f:
                json.dump(report, f, indent=2, default=str)
        except OSError as e:
            logger.error(f"Failed to save security report: {e}")
            return None
        logger.info(f"Security report saved: {path}")
        return path

    def load_reports(self) -> int:
        """Register backup records from earlier security reports in the backup root.

        Records whose backup has since expired are ignored. Returns the number of
        records loaded.
        """
        loaded = 0
        for report_path in sorted(self.backup_root.glob("security-report-*.json")):
            try:
                with report_path.open(encoding="utf-8") as f:
                    report = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable security report {report_path.name}: {e}")
                continue
            for data in report.get("backups", []):
                try:
                    record = BackupRecord.from_dict(data)
                except (KeyError, ValueError) as e:
                    logger.warning(f"Skipping corrupt backup record in {report_path.name}: {e}")
                    continue
                if record.id not in self.records and os.path.lexists(record.backup_path):
                    self.records[record.id] = record
                    loaded += 1
        return loaded
