#!/usr/bin/env python3
"""
Operation Logging for Ultra Cleaner

All modules log through named loggers below ``ultraclean``. This module wires
those loggers to two sinks:

- a rich console handler for immediate feedback (warnings and errors, or
  everything in verbose mode)
- the operation log: an append-only JSON-lines file with one entry per record,
  ``{timestamp, level, message, context, session}``

Structured context is passed as ``extra={"context": {...}}`` and ends up in
the JSON line untouched.
"""

import json
import logging
import pathlib
from collections import Counter
from datetime import datetime, timezone
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "ultraclean"

LOG_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class OperationLog(logging.Handler):
    """Logging handler that keeps every entry of the session and appends it to a JSON-lines file"""

    def __init__(self, session: str, log_file: Optional[pathlib.Path] = None, level: int = logging.INFO):
        super().__init__(level)
        self.session = session
        self.log_file = log_file
        self.entries: list[dict] = []
        self.counts: Counter = Counter()
        self._file_failed = False

        if self.log_file:
            try:
                self.log_file.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                # Keep running without the file sink; entries stay in memory for the report
                self._file_failed = True
                logging.getLogger(LOGGER_NAME).warning(f"Failed to initialize logging: {e}")

    def emit(self, record: logging.LogRecord):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "context": getattr(record, "context", {}),
            "session": self.session,
        }
        self.entries.append(entry)
        self.counts[record.levelname] += 1

        if not self.log_file or self._file_failed:
            return
        try:
            with self.log_file.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError:
            # Keep running without the file sink; entries stay in memory for the report
            self._file_failed = True
            self.handleError(record)

    def summary(self) -> dict:
        """Counts used by the end-of-run security report"""
        return {
            "totalOperations": len(self.entries),
            "errors": self.counts["ERROR"] + self.counts["CRITICAL"],
            "warnings": self.counts["WARNING"],
            "infos": self.counts["INFO"],
            "session": self.session,
        }


def parse_log_level(name: str) -> int:
    """Map a config log level name to a logging level"""
    try:
        return LOG_LEVELS[name.lower()]
    except KeyError:
        raise ValueError(f"Invalid log level: {name}") from None


def configure_logging(
    console: Console,
    session: str,
    verbose: bool = False,
    log_file: Optional[pathlib.Path] = None,
    file_level: str = "info",
) -> OperationLog:
    """Attach console and operation-log handlers to the ``ultraclean`` logger.

    Returns the operation log so callers can read its entries and counts.
    Calling this again replaces previously installed handlers.
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    console_handler = RichHandler(
        console=console,
        level=logging.DEBUG if verbose else logging.WARNING,
        show_path=False,
        show_time=verbose,
        markup=False,
        rich_tracebacks=True,
    )
    logger.addHandler(console_handler)

    operation_log = OperationLog(session, log_file=log_file, level=parse_log_level(file_level))
    logger.addHandler(operation_log)
    return operation_log
