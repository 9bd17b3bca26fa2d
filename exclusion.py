#!/usr/bin/env python3
"""
Exclusion pattern matching

Decides whether a path is protected from cleanup by a configured glob
pattern. Patterns support ``**`` (any characters, across separators),
``*`` (within one path segment), ``?`` (one non-separator character) and
``[...]`` character classes (``[!...]`` negates). A pattern matches when it
lines up with whole path segments anywhere in the path, so ``*.log`` matches
``/var/log/app.log`` and ``node_modules`` matches any directory of that name.
Matching ignores case.
"""

import logging
import re
from typing import Iterable, Optional

logger = logging.getLogger("ultraclean.exclusion")


def glob_to_regex(pattern: str) -> str:
    """Translate an exclusion glob into a regular expression source"""
    parts = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "*":
            if pattern[i : i + 2] == "**":
                parts.append(".*")
                i += 2
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "[" and pattern[i + 1 : i + 2] == "!":
            parts.append("[^")
            i += 2
            continue
        elif char in "[]":
            # Character classes pass through; an unbalanced bracket makes the pattern invalid
            parts.append(char)
        else:
            parts.append(re.escape(char))
        i += 1
    return "".join(parts)


def normalize_path(path: str) -> str:
    return str(path).replace("\\", "/")


class ExclusionMatcher:
    """Global and per-category exclusion patterns"""

    def __init__(self, global_patterns: Iterable[str] = (), per_category: Optional[dict[str, list[str]]] = None):
        self.global_patterns = list(global_patterns)
        self.per_category = {k: list(v) for k, v in (per_category or {}).items()}
        self._compiled: dict[str, Optional[re.Pattern]] = {}

    @classmethod
    def from_config(cls, exclude_patterns: dict) -> "ExclusionMatcher":
        """Build from the ``excludePatterns`` section of the configuration"""
        return cls(exclude_patterns.get("global", []), exclude_patterns.get("perCategory", {}))

    def _compile(self, pattern: str) -> Optional[re.Pattern]:
        if pattern not in self._compiled:
            try:
                # Patterns match whole path segments anywhere in the path
                regex = f"(?:^|/){glob_to_regex(pattern)}(?:/|$)"
                self._compiled[pattern] = re.compile(regex, re.IGNORECASE)
            except re.error as e:
                logger.warning(f"Invalid exclude pattern: {pattern} - {e}", extra={"context": {"pattern": pattern}})
                self._compiled[pattern] = None
        return self._compiled[pattern]

    def matches(self, path: str, pattern: str) -> bool:
        """True if *path* (or its directory form with a trailing slash) matches *pattern*"""
        regex = self._compile(pattern)
        if regex is None:
            return False
        normalized = normalize_path(path)
        return bool(regex.search(normalized) or regex.search(normalized.rstrip("/") + "/"))

    def patterns_for(self, category: Optional[str] = None) -> list[str]:
        patterns = list(self.global_patterns)
        if category:
            patterns.extend(self.per_category.get(category, []))
        return patterns

    def is_excluded(self, path: str, category: Optional[str] = None) -> bool:
        """True if any global pattern or any pattern of *category* matches *path*"""
        return any(self.matches(path, pattern) for pattern in self.patterns_for(category))
