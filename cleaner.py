#!/usr/bin/env python3
"""
Cleanup execution

Processes cleanup targets one at a time: check exclusions, validate, measure,
back up, then delete (or, in preview mode, only measure). Problems with one
target are logged and recorded in its OperationResult; they never stop the
run. Run-wide totals are folded into an explicit CleanupStats accumulator.
"""

import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from analytics import AnalyticsManager
from backup_manager import BackupManager
from cleanup_paths import CleanupTarget
from exclusion import ExclusionMatcher
from file_operations import ensure_directory, measure_tree, remove_path
from target_validator import TargetValidator

logger = logging.getLogger("ultraclean.cleaner")

NPM_CLEAN_COMMAND = ("cache", "clean", "--force")
NPM_TIMEOUT_SECONDS = 300


@dataclass
class OperationResult:
    """What processing one cleanup target achieved"""

    bytes_freed: int = 0
    file_count: int = 0
    success: bool = True
    error: Optional[str] = None
    skipped: Optional[str] = None
    backup_id: Optional[str] = None


@dataclass
class CleanupStats:
    """Run-wide totals; only ever added to"""

    total_cleaned: int = 0
    total_files: int = 0
    areas_processed: int = 0
    errors: int = 0
    start_time: float = field(default_factory=time.monotonic)

    def record(self, result: OperationResult):
        if result.skipped:
            return
        self.total_cleaned += result.bytes_freed
        self.total_files += result.file_count
        if result.success:
            self.areas_processed += 1
        else:
            self.errors += 1

    @property
    def duration(self) -> float:
        return time.monotonic() - self.start_time


@dataclass
class RunReport:
    """Every target of a run with its result, plus the totals"""

    stats: CleanupStats
    results: list[tuple[CleanupTarget, OperationResult]] = field(default_factory=list)
    cancelled: bool = False
    npm_cache_cleaned: Optional[bool] = None


class Cleaner:
    """Deletes (or previews deleting) cleanup targets"""

    def __init__(
        self,
        dry_run: bool = False,
        exclusions: Optional[ExclusionMatcher] = None,
        validator: Optional[TargetValidator] = None,
        backups: Optional[BackupManager] = None,
        analytics: Optional[AnalyticsManager] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ):
        self.dry_run = dry_run
        self.exclusions = exclusions or ExclusionMatcher()
        self.validator = validator or TargetValidator()
        self.backups = backups
        self.analytics = analytics
        self.should_stop = should_stop or (lambda: False)

    def clean_target(self, target: CleanupTarget, stats: CleanupStats) -> OperationResult:
        """Process one target and fold its outcome into *stats*"""
        started = time.monotonic()
        result = self._process(target)
        stats.record(result)

        if self.analytics and not result.skipped:
            self.analytics.track_operation(
                category=target.category,
                description=target.label,
                files=result.file_count,
                size=result.bytes_freed,
                success=result.success,
                error=result.error,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        return result

    def _process(self, target: CleanupTarget) -> OperationResult:
        context = {"targetPath": target.path, "category": target.category}

        if self.exclusions.is_excluded(target.path, target.category):
            logger.info(f"Excluded by pattern: {target.label}", extra={"context": context})
            return OperationResult(skipped="excluded")

        validation = self.validator.validate(target.path)
        if not validation.exists:
            logger.debug(f"Not found: {target.label}", extra={"context": context})
            return OperationResult(skipped="missing")
        if validation.error:
            return OperationResult(success=False, error=validation.error)

        skip = self._skip_for(target.category)
        measured = measure_tree(target.path, should_stop=self.should_stop, skip=skip)
        if self.should_stop():
            # Stopped during measurement; the target is left untouched
            return OperationResult(skipped="cancelled")
        if measured.size == 0:
            logger.debug(f"Empty: {target.label}", extra={"context": context})
            return OperationResult(skipped="empty")

        if self.dry_run:
            logger.info(
                f"[DRY RUN] {target.label}: {measured.count} files, {measured.size} bytes",
                extra={"context": {**context, "size": measured.size, "files": measured.count}},
            )
            return OperationResult(bytes_freed=measured.size, file_count=measured.count)

        backup_id = self.backups.create_backup(target.path) if self.backups else None

        was_directory = os.path.isdir(target.path) and not os.path.islink(target.path)
        removal = remove_path(target.path, skip=skip)
        if was_directory:
            ensure_directory_if_needed(target.path)

        if removal.success:
            logger.info(
                f"{target.label}: {measured.count} files, {measured.size} bytes freed",
                extra={"context": {**context, "size": measured.size, "files": measured.count, "backupId": backup_id}},
            )
            return OperationResult(
                bytes_freed=measured.size, file_count=measured.count, success=True, backup_id=backup_id
            )

        remaining = measure_tree(target.path, skip=skip)
        error = "; ".join(f"{path}: {message}" for path, message in removal.errors)
        logger.warning(
            f"Partial cleanup: {target.label} - {error}",
            extra={"context": {**context, "errors": len(removal.errors), "backupId": backup_id}},
        )
        return OperationResult(
            bytes_freed=max(measured.size - remaining.size, 0),
            file_count=max(measured.count - remaining.count, 0),
            success=False,
            error=error,
            backup_id=backup_id,
        )

    def _skip_for(self, category: str) -> Optional[Callable[[str], bool]]:
        """Predicate for entries inside a target that exclusion patterns protect"""
        if not self.exclusions.patterns_for(category):
            return None
        return lambda path: self.exclusions.is_excluded(path, category)

    def run(
        self,
        targets: Iterable[CleanupTarget],
        stats: Optional[CleanupStats] = None,
        on_result: Optional[Callable[[CleanupTarget, OperationResult], None]] = None,
    ) -> RunReport:
        """Process targets sequentially; a stop request skips whatever has not started yet"""
        report = RunReport(stats=stats or CleanupStats())
        for target in targets:
            if self.should_stop():
                report.cancelled = True
                result = OperationResult(skipped="cancelled")
            else:
                result = self.clean_target(target, report.stats)
                if result.skipped == "cancelled":
                    report.cancelled = True
            report.results.append((target, result))
            if on_result:
                on_result(target, result)
        return report


def ensure_directory_if_needed(path: str):
    """Directory targets are emptied in place; make sure the directory is still there afterwards"""
    if not ensure_directory(path):
        logger.debug(f"Could not recreate {path}")


def clean_npm_cache(timeout: int = NPM_TIMEOUT_SECONDS) -> bool:
    """Run ``npm cache clean --force``. Failures are warnings, never fatal."""
    npm = shutil.which("npm")
    if npm is None:
        logger.warning("NPM cache cleanup skipped: npm not found")
        return False

    try:
        completed = subprocess.run(
            [npm, *NPM_CLEAN_COMMAND],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning(f"NPM cache cleanup failed: {e}")
        return False

    if completed.returncode != 0:
        logger.warning(
            f"NPM cache cleanup failed: npm exited with code {completed.returncode}",
            extra={"context": {"stderr": completed.stderr.strip()[-500:]}},
        )
        return False

    logger.info("NPM cache cleaned")
    return True
