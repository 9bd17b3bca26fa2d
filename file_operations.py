#!/usr/bin/env python3
"""
Filesystem Operations Module

Measures, copies and clears directory trees for the cleaner. Measuring is
best-effort: anything that cannot be read contributes nothing instead of
failing the whole walk. Symbolic links are never followed.
"""

import os
import shutil
import stat
from dataclasses import dataclass, field
from typing import Callable, Optional


@dataclass
class TreeSize:
    """Total bytes and regular file count of a tree"""

    size: int = 0
    count: int = 0

    def __add__(self, other: "TreeSize") -> "TreeSize":
        return TreeSize(self.size + other.size, self.count + other.count)


@dataclass
class RemovalResult:
    """Outcome of clearing a directory's contents"""

    removed: int = 0
    kept: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


def measure_tree(
    path: str,
    should_stop: Optional[Callable[[], bool]] = None,
    skip: Optional[Callable[[str], bool]] = None,
) -> TreeSize:
    """Return the size and regular file count below *path*.

    A missing path measures as zero. A path that is itself a regular file
    measures as that one file. Permission errors anywhere in the tree are
    swallowed and the unreadable part counts as zero. Entries for which
    *skip* returns True are left out, directories with everything below them.
    """
    try:
        st = os.lstat(path)
    except OSError:
        return TreeSize()

    if stat.S_ISREG(st.st_mode):
        return TreeSize(st.st_size, 1)
    if not stat.S_ISDIR(st.st_mode):
        return TreeSize()

    result = TreeSize()
    # os.walk reports unreadable directories through onerror; ignoring them skips that subtree
    for dirpath, dirnames, filenames in os.walk(path, followlinks=False):
        if should_stop and should_stop():
            break
        if skip:
            dirnames[:] = [d for d in dirnames if not skip(os.path.join(dirpath, d))]
        for name in filenames:
            file_path = os.path.join(dirpath, name)
            if skip and skip(file_path):
                continue
            try:
                file_stat = os.lstat(file_path)
            except OSError:
                continue
            if stat.S_ISREG(file_stat.st_mode):
                result.size += file_stat.st_size
                result.count += 1
    return result


def clear_directory(path: str, skip: Optional[Callable[[str], bool]] = None) -> RemovalResult:
    """Remove everything inside *path*, keeping going past failures.

    Entries for which *skip* returns True are kept. With a *skip* callable,
    subdirectories are cleared entry by entry and only removed once empty.
    """
    result = RemovalResult()
    try:
        entries = list(os.scandir(path))
    except OSError as e:
        result.errors.append((path, str(e)))
        return result

    for entry in entries:
        if skip and skip(entry.path):
            result.kept += 1
            continue
        try:
            if entry.is_dir(follow_symlinks=False):
                if skip is None:
                    shutil.rmtree(entry.path)
                else:
                    inner = clear_directory(entry.path, skip)
                    result.errors.extend(inner.errors)
                    if inner.kept or inner.errors:
                        result.kept += 1
                        continue
                    os.rmdir(entry.path)
            else:
                os.unlink(entry.path)
            result.removed += 1
        except OSError as e:
            result.errors.append((entry.path, str(e)))
    return result


def remove_path(path: str, skip: Optional[Callable[[str], bool]] = None) -> RemovalResult:
    """Remove the contents of a directory target, or the target itself if it is not a directory."""
    if os.path.isdir(path) and not os.path.islink(path):
        return clear_directory(path, skip)

    result = RemovalResult()
    if skip and skip(path):
        result.kept = 1
        return result
    try:
        os.unlink(path)
        result.removed = 1
    except FileNotFoundError:
        pass
    except OSError as e:
        result.errors.append((path, str(e)))
    return result


def ensure_directory(path: str) -> bool:
    """Recreate an emptied directory. Failure is tolerated and reported as False."""
    try:
        os.makedirs(path, exist_ok=True)
        return True
    except OSError:
        return False


def copy_tree(source: str, target: str):
    """Copy a file or a directory tree, preserving metadata and links as links"""
    if os.path.isdir(source) and not os.path.islink(source):
        shutil.copytree(source, target, symlinks=True)
    else:
        shutil.copy2(source, target, follow_symlinks=False)


def restore_tree(source: str, target: str):
    """Copy a backup back over *target*, merging into whatever exists there"""
    if os.path.isdir(source) and not os.path.islink(source):
        shutil.copytree(source, target, symlinks=True, dirs_exist_ok=True)
    else:
        os.makedirs(os.path.dirname(target) or ".", exist_ok=True)
        shutil.copy2(source, target, follow_symlinks=False)


def discard(path: str):
    """Delete a file or tree that we created ourselves (backups, partial copies)"""
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.unlink(path)


def is_within(path: str, parent: str) -> bool:
    """True if *path* equals *parent* or lies somewhere below it"""
    path = os.path.normcase(os.path.abspath(path))
    parent = os.path.normcase(os.path.abspath(parent))
    try:
        return os.path.commonpath([path, parent]) == parent
    except ValueError:
        # Different drives on Windows
        return False
