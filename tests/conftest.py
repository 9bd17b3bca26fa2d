"""Shared fixtures for the Ultra Cleaner tests."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from operation_log import LOGGER_NAME

FIXTURE_FILES = {
    "a.tmp": b"x" * 50,
    "b.cache": b"y" * 60,
    "nested/c.log": b"z" * 40,
}


@pytest.fixture(autouse=True)
def reset_ultraclean_logger():
    """Undo handler changes made by configure_logging so caplog keeps working."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def fixture_dir(tmp_path: Path) -> Path:
    """Directory holding 3 files totalling 150 bytes, one of them in a subdirectory."""
    root = tmp_path / "fixture"
    for relative, content in FIXTURE_FILES.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return root


@pytest.fixture
def write_config(tmp_path: Path):
    """Write a configuration file whose state locations all live under tmp_path."""

    def _write(custom_paths=None, exclude_global=None, per_category=None, **global_overrides) -> Path:
        data = {
            "version": "1.0",
            "global": {
                "backup": True,
                "logging": True,
                "analytics": True,
                "logLevel": "info",
                "backupLocation": str(tmp_path / "state" / "backups"),
                "logLocation": str(tmp_path / "state" / "ultra-cleaner.log"),
                "analyticsLocation": str(tmp_path / "state" / "analytics"),
                "npmCacheClean": False,
                **global_overrides,
            },
            "categories": {"user": {"enabled": True}},
            "customPaths": custom_paths or [],
            "excludePatterns": {"global": exclude_global or [], "perCategory": per_category or {}},
        }
        path = tmp_path / "ultra-cleaner.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


def snapshot(root: Path) -> dict[str, bytes]:
    """Relative path -> content for every file below root."""
    return {str(p.relative_to(root)): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}
