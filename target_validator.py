#!/usr/bin/env python3
"""
Cleanup target validation

Checks a target before anything destructive happens to it. A failed check
is a per-target problem: it is logged and the target is left alone.
"""

import logging
import os
import pathlib
from dataclasses import dataclass
from typing import Iterable, Optional

from file_operations import is_within

logger = logging.getLogger("ultraclean.validation")

# Operating on these is allowed, but worth a warning
SYSTEM_PATHS = (
    "C:\\Windows",
    "C:\\Program Files",
    "/System",
    "/usr",
    "/etc",
)


@dataclass
class ValidationResult:
    exists: bool
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.exists and self.error is None


class TargetValidator:
    """Validates cleanup targets against existence, permissions and protected paths"""

    def __init__(self, protected_paths: Iterable[pathlib.Path] = (), home: Optional[pathlib.Path] = None):
        self.protected_paths = [str(p) for p in protected_paths]
        self.home = str(home or pathlib.Path.home())

    def validate(self, path: str, operation: str = "delete") -> ValidationResult:
        if not os.path.lexists(path):
            return ValidationResult(exists=False)

        if not os.access(path, os.R_OK | os.W_OK):
            error = f"Insufficient permissions for: {path}"
            logger.error(
                f"Operation validation failed: {error}",
                extra={"context": {"targetPath": path, "operation": operation}},
            )
            return ValidationResult(exists=True, error=error)

        for protected in self.protected_paths:
            if is_within(protected, path):
                error = f"Target contains cleaner state: {protected}"
                logger.error(
                    f"Operation validation failed: {error}",
                    extra={"context": {"targetPath": path, "operation": operation}},
                )
                return ValidationResult(exists=True, error=error)

        for system_path in SYSTEM_PATHS:
            if path.startswith(system_path) and not path.startswith(self.home):
                logger.warning(
                    f"Operating on system path: {path}",
                    extra={"context": {"targetPath": path, "systemPath": system_path}},
                )
                break

        logger.debug(f"Operation validated: {operation}", extra={"context": {"targetPath": path}})
        return ValidationResult(exists=True)
