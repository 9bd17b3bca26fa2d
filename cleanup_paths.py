#!/usr/bin/env python3
"""
Cleanup path table

Resolves the per-platform table in cleanup_paths.toml into concrete cleanup
targets. The resolver only looks things up: platform -> ordered templates,
placeholder -> environment value.
"""

import logging
import os
import pathlib
import string
import sys
import tempfile
import tomllib
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

logger = logging.getLogger("ultraclean.paths")

PATHS_FILE = pathlib.Path(__file__).parent / "cleanup_paths.toml"

CATEGORIES = ("system", "user", "browser", "app", "npm", "log")

# Areas group categories; modes and config sections select areas
AREAS = ("system", "user", "browsers", "apps", "npm", "logs")
AREA_BY_CATEGORY = {
    "system": "system",
    "user": "user",
    "browser": "browsers",
    "app": "apps",
    "npm": "npm",
    "log": "logs",
}

MODE_AREAS = {
    "quick": ("system", "user", "npm"),
    "deep": AREAS,
    "dry-run": AREAS,
}

PLATFORM_TABLES = {"win32": "windows", "darwin": "macos"}


@dataclass(frozen=True)
class CleanupTarget:
    """A named filesystem path slated for measurement and possible deletion"""

    path: str
    label: str
    category: str

    @property
    def area(self) -> str:
        return AREA_BY_CATEGORY[self.category]


def platform_key(platform: Optional[str] = None) -> str:
    """Map sys.platform to a table name in cleanup_paths.toml"""
    return PLATFORM_TABLES.get(platform or sys.platform, "linux")


def default_variables(environ: Optional[Mapping[str, str]] = None) -> dict[str, str]:
    """Placeholder values: the environment plus HOME and TMPDIR"""
    variables = dict(os.environ if environ is None else environ)
    variables["HOME"] = str(pathlib.Path.home())
    variables["TMPDIR"] = tempfile.gettempdir()
    return variables


def load_table(path: pathlib.Path = PATHS_FILE) -> dict[str, list[dict]]:
    with path.open("rb") as f:
        return tomllib.load(f)


def _placeholders(template: str) -> list[str]:
    return [name for _text, name, _spec, _conv in string.Formatter().parse(template) if name]


def resolve_template(template: str, variables: Mapping[str, str]) -> Optional[str]:
    """Fill {NAME} placeholders; None if any placeholder has no (non-empty) value"""
    names = _placeholders(template)
    if any(not variables.get(name) for name in names):
        return None
    return str(pathlib.Path(template.format_map({name: variables[name] for name in names})))


def resolve_targets(
    platform: Optional[str] = None,
    variables: Optional[Mapping[str, str]] = None,
    table: Optional[dict[str, list[dict]]] = None,
) -> list[CleanupTarget]:
    """Return the cleanup targets for a platform, common entries first, without duplicate paths"""
    table = load_table() if table is None else table
    variables = default_variables() if variables is None else variables
    key = platform_key(platform)

    targets: list[CleanupTarget] = []
    seen: set[str] = set()
    for entry in [*table.get("common", []), *table.get(key, [])]:
        path = resolve_template(entry["path"], variables)
        if path is None:
            logger.debug(f"Skipping {entry['label']}: unresolved placeholder in {entry['path']}")
            continue
        if path in seen:
            continue
        seen.add(path)
        targets.append(CleanupTarget(path=path, label=entry["label"], category=entry["category"]))
    return targets


def group_by_area(targets: Iterable[CleanupTarget], areas: Iterable[str] = AREAS) -> list[tuple[str, list[CleanupTarget]]]:
    """Group targets by area in the order of *areas*, keeping table order inside each area"""
    targets = list(targets)
    grouped = []
    for area in areas:
        members = [t for t in targets if t.area == area]
        if members:
            grouped.append((area, members))
    return grouped
