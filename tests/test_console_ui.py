"""Tests for console_ui.py module."""

from __future__ import annotations

from io import StringIO

import pytest
from rich.console import Console

from backup_manager import BackupKind, BackupRecord
from cleaner import CleanupStats, OperationResult, RunReport
from cleanup_paths import CleanupTarget
from console_ui import ConsoleUI


@pytest.fixture
def ui() -> ConsoleUI:
    ui = ConsoleUI(no_color=True)
    ui.console = Console(file=StringIO(), width=120, no_color=True)
    return ui


def output(ui: ConsoleUI) -> str:
    return ui.console.file.getvalue()


TARGET = CleanupTarget("/tmp/fixture", "Fixture", "user")


def test_target_result_lines(ui: ConsoleUI):
    ui.show_target_result(TARGET, OperationResult(bytes_freed=150, file_count=3))
    ui.show_target_result(TARGET, OperationResult(bytes_freed=150, file_count=3), dry_run=True)
    ui.show_target_result(TARGET, OperationResult(skipped="excluded"))
    ui.show_target_result(TARGET, OperationResult(bytes_freed=50, file_count=1, success=False, error="denied"))

    lines = output(ui).splitlines()
    assert lines[0].strip() == "Fixture: 3 files, 150 B freed"
    assert lines[1].strip() == "[DRY RUN] Fixture: 3 files, 150 B"
    assert lines[2].strip() == "Excluded: Fixture"
    assert lines[3].strip() == "Partial cleanup: Fixture - denied"


def test_results_panel(ui: ConsoleUI):
    stats = CleanupStats(total_cleaned=2048, total_files=3, areas_processed=1, errors=1)
    report = RunReport(stats=stats, results=[(TARGET, OperationResult(bytes_freed=2048, backup_id="1-a"))])

    ui.show_results(report)

    text = output(ui)
    assert "Cleanup completed" in text
    assert "2.0 KiB" in text
    assert "Errors" in text
    assert "1 backups created" in text


def test_results_panel_for_dry_run_and_interruption(ui: ConsoleUI):
    ui.show_results(RunReport(stats=CleanupStats()), dry_run=True)
    ui.show_results(RunReport(stats=CleanupStats(), cancelled=True))

    assert "Dry run complete" in output(ui)
    assert "Cleanup interrupted" in output(ui)


def test_backup_list(ui: ConsoleUI):
    ui.show_backup_list([])
    ui.show_backup_list([BackupRecord("1-a", "/tmp/fixture", "/b/1-a.backup", "delete", 1, 150, BackupKind.MANIFEST)])

    text = output(ui)
    assert "No backups available." in text
    assert "1-a" in text
    assert "manifest" in text


def test_select_from_list(ui: ConsoleUI, monkeypatch):
    answers = iter(["x", "1,3"])
    monkeypatch.setattr(ui, "prompt", lambda *args, **kwargs: next(answers))

    assert ui.select_from_list(["system", "user", "npm"]) == ["system", "npm"]
    assert "Invalid selection" in output(ui)


def test_select_all(ui: ConsoleUI, monkeypatch):
    monkeypatch.setattr(ui, "prompt", lambda *args, **kwargs: "all")
    assert ui.select_from_list(["system", "user"]) == ["system", "user"]
    assert ui.select_from_list([]) == []


def test_configuration_table(ui: ConsoleUI):
    ui.show_configuration({"Mode": "quick", "Areas": ["System Temp Files", "NPM Cache"], "Dry run": "no"})

    text = output(ui)
    assert "quick" in text
    assert "System Temp Files, NPM Cache" in text
    assert "Dry run" in text
