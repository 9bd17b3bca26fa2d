#!/usr/bin/env python3
"""
Ultra Cleaner Configuration Manager

Finds, validates and saves the JSON configuration. Discovery order is an
explicit path, then ./ultra-cleaner.json, then ~/.ultra-cleaner.json, then the
bundled ultra-cleaner.default.json. A file that exists but cannot be parsed or
fails validation is a fatal ConfigurationError.
"""

import json
import logging
import pathlib
from dataclasses import dataclass, field
from typing import Any, Optional

from cleanup_paths import AREA_BY_CATEGORY, AREAS, CATEGORIES, CleanupTarget
from operation_log import LOG_LEVELS

logger = logging.getLogger("ultraclean.config")

CONFIG_FILENAME = "ultra-cleaner.json"
HOME_CONFIG_FILENAME = ".ultra-cleaner.json"
DEFAULT_CONFIG_FILE = pathlib.Path(__file__).parent / "ultra-cleaner.default.json"

REQUIRED_FIELDS = ("version", "global", "categories")

DEFAULT_GLOBAL: dict[str, Any] = {
    "dryRun": False,
    "verbose": False,
    "colors": True,
    "backup": True,
    "logging": True,
    "analytics": True,
    "logLevel": "info",
    "backupLocation": "~/.ultra-cleaner-backups",
    "logLocation": "~/.ultra-cleaner.log",
    "analyticsLocation": "~/.ultra-cleaner-analytics",
    "retentionDays": 30,
    "maxBackupSize": 1024**3,
    "maxHistoryDays": 90,
    "npmCacheClean": True,
}


class ConfigurationError(Exception):
    """Malformed or structurally invalid configuration"""


@dataclass
class CleanerConfig:
    """Configuration for one run of the cleaner"""

    version: str = "1.0"
    global_settings: dict = field(default_factory=lambda: dict(DEFAULT_GLOBAL))
    categories: dict = field(default_factory=dict)
    custom_paths: list[dict] = field(default_factory=list)
    exclude_patterns: dict = field(default_factory=lambda: {"global": [], "perCategory": {}})
    source_path: Optional[pathlib.Path] = None

    def setting(self, key: str) -> Any:
        """Global setting with the built-in default as fallback"""
        return self.global_settings.get(key, DEFAULT_GLOBAL.get(key))

    def location(self, key: str) -> pathlib.Path:
        """Global path setting with ~ expanded"""
        return pathlib.Path(str(self.setting(key))).expanduser()

    def is_area_enabled(self, area: str) -> bool:
        section = self.categories.get(area) or {}
        return section.get("enabled", True) is not False

    def enabled_areas(self, areas: tuple[str, ...] = AREAS) -> list[str]:
        return [a for a in areas if self.is_area_enabled(a)]

    def custom_targets(self) -> list[CleanupTarget]:
        """Enabled custom paths as cleanup targets; entries may give one ``path`` or a ``paths`` list"""
        targets = []
        for entry in self.custom_paths:
            if entry.get("enabled", True) is False:
                continue
            paths = entry.get("paths") or [entry["path"]]
            for path in paths:
                expanded = str(pathlib.Path(path).expanduser())
                targets.append(
                    CleanupTarget(
                        path=expanded,
                        label=entry.get("label") or entry.get("description") or expanded,
                        category=entry["category"],
                    )
                )
        return targets

    def apply_overrides(self, overrides: dict[str, Any]):
        """Merge command-line choices into the global settings; None means 'not given'"""
        for key, value in overrides.items():
            if value is not None:
                self.global_settings[key] = value

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return {
            "version": self.version,
            "global": self.global_settings,
            "categories": self.categories,
            "customPaths": self.custom_paths,
            "excludePatterns": self.exclude_patterns,
        }

    @classmethod
    def from_dict(cls, data: dict, source_path: Optional[pathlib.Path] = None) -> "CleanerConfig":
        """Create from dictionary"""
        exclude = data.get("excludePatterns") or {}
        return cls(
            version=str(data["version"]),
            global_settings={**DEFAULT_GLOBAL, **data["global"]},
            categories=data["categories"],
            custom_paths=list(data.get("customPaths") or []),
            exclude_patterns={
                "global": list(exclude.get("global") or []),
                "perCategory": dict(exclude.get("perCategory") or {}),
            },
            source_path=source_path,
        )


def _known_category_key(key: str) -> bool:
    return key in AREAS or key in CATEGORIES


def validate_config(data: Any):
    """Raise ConfigurationError for structural problems; warn about unknown categories"""
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a JSON object")

    for required in REQUIRED_FIELDS:
        if required not in data:
            raise ConfigurationError(f"Missing required configuration field: {required}")

    if not isinstance(data["global"], dict):
        raise ConfigurationError("'global' must be an object")
    if not isinstance(data["categories"], dict):
        raise ConfigurationError("'categories' must be an object")

    log_level = data["global"].get("logLevel")
    if log_level is not None and log_level not in LOG_LEVELS:
        raise ConfigurationError(f"Invalid log level: {log_level}")

    for key in data["categories"]:
        if not _known_category_key(key):
            logger.warning(f"Unknown category: {key}", extra={"context": {"category": key}})

    custom_paths = data.get("customPaths", [])
    if not isinstance(custom_paths, list):
        raise ConfigurationError("'customPaths' must be an array")
    for index, entry in enumerate(custom_paths):
        if not isinstance(entry, dict) or not (entry.get("path") or entry.get("paths")):
            raise ConfigurationError(f"customPaths[{index}] needs a 'path' or 'paths'")
        if entry.get("category") not in AREA_BY_CATEGORY:
            raise ConfigurationError(
                f"customPaths[{index}] has invalid category {entry.get('category')!r} "
                f"(expected one of: {', '.join(CATEGORIES)})"
            )

    exclude = data.get("excludePatterns", {})
    if not isinstance(exclude, dict):
        raise ConfigurationError("'excludePatterns' must be an object")
    if not isinstance(exclude.get("global", []), list):
        raise ConfigurationError("'excludePatterns.global' must be an array")
    if not isinstance(exclude.get("perCategory", {}), dict):
        raise ConfigurationError("'excludePatterns.perCategory' must be an object")


class ConfigManager:
    """Manages loading and saving configuration"""

    def __init__(self, cwd: Optional[pathlib.Path] = None, home: Optional[pathlib.Path] = None):
        self.cwd = cwd or pathlib.Path.cwd()
        self.home = home or pathlib.Path.home()
        self.config: Optional[CleanerConfig] = None

    def candidates(self) -> list[pathlib.Path]:
        """Non-explicit locations in discovery order"""
        return [self.cwd / CONFIG_FILENAME, self.home / HOME_CONFIG_FILENAME, DEFAULT_CONFIG_FILE]

    def discover(self, explicit: Optional[pathlib.Path] = None) -> pathlib.Path:
        if explicit is not None:
            explicit = explicit.expanduser().resolve()
            if not explicit.is_file():
                raise ConfigurationError(f"Configuration file not found: {explicit}")
            return explicit

        for candidate in self.candidates():
            if candidate.is_file():
                return candidate
        raise ConfigurationError(f"Bundled default configuration is missing: {DEFAULT_CONFIG_FILE}")

    def load(self, explicit: Optional[pathlib.Path] = None) -> CleanerConfig:
        """Load configuration from the first file found"""
        path = self.discover(explicit)
        try:
            with path.open(encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Failed to parse {path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Failed to read {path}: {e}") from e

        validate_config(data)
        self.config = CleanerConfig.from_dict(data, source_path=path)
        logger.info(f"Loaded configuration: {path}", extra={"context": {"path": str(path)}})
        return self.config

    def save(self, config: CleanerConfig, target: Optional[pathlib.Path] = None) -> pathlib.Path:
        """Save configuration to file, defaulting to the file it was loaded from"""
        path = target or config.source_path
        if path is None:
            raise ConfigurationError("No target path to save configuration to")
        path = path.expanduser()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as f:
                json.dump(config.to_dict(), f, indent=2)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration to {path}: {e}") from e
        logger.info(f"Configuration saved to: {path}", extra={"context": {"path": str(path)}})
        return path
