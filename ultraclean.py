#!/usr/bin/env python3
"""
Ultra Cleaner

A cross-platform cleanup tool that finds known operating-system and
application cache and temp directories, measures them, backs them up and
deletes their contents to reclaim disk space.

Usage:
    ultraclean                         # Interactive mode: choose what to clean
    ultraclean quick                   # System temp, user caches and package manager caches
    ultraclean deep                    # Every known area
    ultraclean custom --areas browsers logs
    ultraclean dry-run                 # Show what would be cleaned, delete nothing
    ultraclean deep --dry-run --report report.html --report-format html
    ultraclean --restore <backup id>   # Put a backed-up target back
"""

import argparse
import logging
import pathlib
import signal
import sys
from typing import Optional

from analytics import REPORT_FORMATS, AnalyticsManager
from auxiliary import format_path_for_display, now_ms, parse_period_days
from backup_manager import BackupManager, BackupNotFoundError
from cleaner import Cleaner, CleanupStats, OperationResult, RunReport, clean_npm_cache
from cleaner_config import CleanerConfig, ConfigManager, ConfigurationError
from cleanup_paths import AREAS, MODE_AREAS, CleanupTarget, group_by_area, resolve_targets
from console_ui import AREA_TITLES, ConsoleUI
from exclusion import ExclusionMatcher
from operation_log import OperationLog, configure_logging
from target_validator import TargetValidator

logger = logging.getLogger("ultraclean.cli")

MODES = ("quick", "deep", "custom", "interactive", "dry-run")

INTERACTIVE_CHOICES = {
    "quick": "Quick Clean (recommended) - common temp files",
    "deep": "Deep Clean - every known cache location",
    "custom": "Custom Clean - choose the areas to clean",
    "dry-run": "Dry Run - preview what would be cleaned",
}


class UltraCleaner:
    """Main application class for the Ultra Cleaner tool."""

    def __init__(self, args: argparse.Namespace):
        self.args = args
        self.ui = ConsoleUI(no_color=args.no_color)
        self._shutdown_requested = False
        self.session = str(now_ms())
        self.config: Optional[CleanerConfig] = None
        self.operation_log: Optional[OperationLog] = None

    # -- signal handling ----------------------------------------------------

    def _signal_handler(self, signum, frame):
        if self._shutdown_requested:
            self.ui.print_warning("\nCleanup interrupted by user. Exiting without rollback.")
            sys.exit(0)
        self._shutdown_requested = True
        self.ui.print_warning("\nStopping after the current target... press Ctrl+C again to quit immediately.")

    def _install_signal_handlers(self) -> dict:
        previous = {signal.SIGINT: signal.signal(signal.SIGINT, self._signal_handler)}
        if hasattr(signal, "SIGTERM"):
            previous[signal.SIGTERM] = signal.signal(signal.SIGTERM, self._signal_handler)
        return previous

    # -- setup ---------------------------------------------------------------

    def load_config(self) -> CleanerConfig:
        config = ConfigManager().load(self.args.config)
        dry_run = True if (self.args.dry_run or self.args.mode == "dry-run") else None
        config.apply_overrides(
            {
                "dryRun": dry_run,
                "verbose": True if self.args.verbose else None,
                "colors": False if self.args.no_color else None,
                "backup": self.args.backup,
                "logging": self.args.log,
                "analytics": self.args.analytics,
            }
        )
        if self.args.save_config:
            ConfigManager().save(config, self.args.save_config)
            self.ui.print_success(f"Configuration saved to: {self.args.save_config}")
        return config

    def setup_logging(self, config: CleanerConfig):
        log_file = config.location("logLocation") if config.setting("logging") else None
        self.operation_log = configure_logging(
            self.ui.console,
            session=self.session,
            verbose=bool(config.setting("verbose")),
            log_file=log_file,
            file_level=config.setting("logLevel"),
        )

    def build_backup_manager(self, config: CleanerConfig) -> BackupManager:
        backups = BackupManager(
            config.location("backupLocation"),
            enabled=bool(config.setting("backup")),
            retention_days=int(config.setting("retentionDays")),
            max_backup_size=int(config.setting("maxBackupSize")),
            session=self.session,
        )
        backups.initialize()
        return backups

    def build_analytics(self, config: CleanerConfig) -> AnalyticsManager:
        analytics = AnalyticsManager(
            config.location("analyticsLocation"),
            enabled=bool(config.setting("analytics")),
            max_history_days=int(config.setting("maxHistoryDays")),
        )
        analytics.initialize()
        return analytics

    # -- mode selection -------------------------------------------------------

    def choose_mode(self) -> str:
        mode = self.args.mode or "interactive"
        if mode != "interactive":
            return mode

        self.ui.print_header("Ultra Cleaner", "Cross-platform system cleanup")
        for name, description in INTERACTIVE_CHOICES.items():
            self.ui.print_plain(f"  {name:<8} {description}")
        return self.ui.prompt("Choose cleanup mode", default="quick", choices=list(INTERACTIVE_CHOICES))

    def choose_areas(self, mode: str, config: CleanerConfig) -> list[str]:
        if mode == "custom":
            if self.args.areas:
                areas = [a for a in AREAS if a in self.args.areas]
            else:
                titles = [f"{area} - {AREA_TITLES[area]}" for area in AREAS]
                picked = self.ui.select_from_list(titles, "Select areas to clean")
                areas = [title.split(" - ", 1)[0] for title in picked]
        else:
            areas = list(MODE_AREAS.get(mode, AREAS))

        enabled = config.enabled_areas()
        disabled = [a for a in areas if a not in enabled]
        if disabled:
            logger.info(f"Areas disabled in configuration: {', '.join(disabled)}")
        return [a for a in areas if a in enabled]

    def collect_targets(self, areas: list[str], config: CleanerConfig) -> list[CleanupTarget]:
        targets = resolve_targets() + config.custom_targets()
        seen: set[str] = set()
        ordered = []
        for _area, members in group_by_area(targets, areas):
            for target in members:
                if target.path not in seen:
                    seen.add(target.path)
                    ordered.append(target)
        return ordered

    # -- commands --------------------------------------------------------------

    def restore(self, backups: BackupManager) -> int:
        if not backups.enabled:
            self.ui.print_error("Backups are disabled; nothing to restore from.")
            return 1
        backups.load_reports()
        try:
            record = backups.get(self.args.restore)
        except BackupNotFoundError as e:
            self.ui.print_error(str(e.args[0]))
            self.ui.show_backup_list(sorted(backups.records.values(), key=lambda r: r.timestamp_ms))
            return 1

        if backups.restore_backup(record.id):
            self.ui.print_success(f"Restored {format_path_for_display(record.original_path)}")
            return 0
        self.ui.print_error(f"Restore of {record.id} failed - see the log for details")
        return 1

    def export_report(self, analytics: AnalyticsManager):
        analytics.export_report(self.args.report, self.args.report_format, self.args.report_period)
        self.ui.print_success(f"Analytics exported to: {self.args.report}")

    def clean(self, mode: str, config: CleanerConfig, backups: BackupManager, analytics: AnalyticsManager) -> int:
        dry_run = bool(config.setting("dryRun"))
        areas = self.choose_areas(mode, config)
        if not areas:
            self.ui.print_warning("No areas selected - nothing to clean.")
            return 0

        self.ui.show_configuration(
            {
                "Mode": mode,
                "Areas": [AREA_TITLES[a] for a in areas],
                "Dry run": "yes" if dry_run else "no",
                "Backups": "on" if config.setting("backup") and not dry_run else "off",
                "Configuration": format_path_for_display(str(config.source_path)),
            }
        )

        if not dry_run and not self.args.yes:
            if not self.ui.confirm("Proceed with cleanup? This will delete files", default=False):
                self.ui.print_warning("Operation cancelled by user.")
                return 0

        targets = self.collect_targets(areas, config)
        validator = TargetValidator(
            protected_paths=[
                config.location("backupLocation"),
                config.location("logLocation"),
                config.location("analyticsLocation"),
            ]
        )
        cleaner = Cleaner(
            dry_run=dry_run,
            exclusions=ExclusionMatcher.from_config(config.exclude_patterns),
            validator=validator,
            backups=backups if not dry_run else None,
            analytics=analytics,
            should_stop=lambda: self._shutdown_requested,
        )

        self.ui.print_header("Ultra Cleaner", f"{mode} mode{' (dry run)' if dry_run else ''}")
        current_area: list[str] = []

        def on_result(target: CleanupTarget, result: OperationResult):
            if not current_area or current_area[-1] != target.area:
                current_area.append(target.area)
                self.ui.show_area_header(target.area)
            self.ui.show_target_result(target, result, dry_run)

        analytics.start_session(mode=mode, dry_run=dry_run)
        previous_handlers = self._install_signal_handlers()
        try:
            report = cleaner.run(targets, CleanupStats(), on_result=on_result)
            if "npm" in areas and not dry_run and not report.cancelled and config.setting("npmCacheClean"):
                report.npm_cache_cleaned = clean_npm_cache()
        finally:
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)

        self.finish(report, dry_run, backups, analytics)
        return 0

    def finish(self, report: RunReport, dry_run: bool, backups: BackupManager, analytics: AnalyticsManager):
        self.ui.show_results(report, dry_run)
        analytics.end_session()
        if backups.enabled and not dry_run and self.operation_log is not None:
            backups.save_report(self.operation_log)

    # -- main entry point ----------------------------------------------------

    def run(self) -> int:
        # Console-only logging until the configuration says where the log file goes
        configure_logging(self.ui.console, session=self.session, verbose=self.args.verbose)

        config = self.load_config()
        self.config = config
        if not config.setting("colors"):
            self.ui.console.no_color = True
        self.setup_logging(config)
        logger.info(
            "Ultra Cleaner started",
            extra={"context": {"config": str(config.source_path), "mode": self.args.mode}},
        )

        backups = self.build_backup_manager(config)
        if self.args.restore:
            return self.restore(backups)

        analytics = self.build_analytics(config)
        if self.args.report_only:
            if not self.args.report:
                self.ui.print_error("--report-only needs --report PATH")
                return 1
            self.export_report(analytics)
            return 0

        mode = self.choose_mode()
        if mode == "dry-run":
            config.apply_overrides({"dryRun": True})
        status = self.clean(mode, config, backups, analytics)

        if self.args.report:
            self.export_report(analytics)
        return status


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _period(value: str) -> str:
    try:
        parse_period_days(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid period {value!r} (use 'all' or e.g. '30days')") from None
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ultraclean",
        description="Ultra Cleaner - cross-platform system cleanup tool",
    )
    parser.add_argument("mode", nargs="?", choices=MODES, help="Cleanup mode (default: interactive)")
    parser.add_argument("--dry-run", action="store_true", help="Preview mode - don't delete anything")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("-y", "--yes", action="store_true", help="Skip confirmations")
    parser.add_argument("--no-color", action="store_true", help="Disable colors")
    parser.add_argument("--areas", nargs="+", choices=AREAS, help="Areas to clean in custom mode")
    parser.add_argument(
        "--backup", action=argparse.BooleanOptionalAction, default=None, help="Back up targets before deleting"
    )
    parser.add_argument(
        "--log", action=argparse.BooleanOptionalAction, default=None, help="Write the JSON-lines operation log"
    )
    parser.add_argument(
        "--analytics", action=argparse.BooleanOptionalAction, default=None, help="Record this session in the history"
    )
    parser.add_argument("--config", type=pathlib.Path, default=None, help="Path to a configuration file")
    parser.add_argument(
        "--save-config", type=pathlib.Path, default=None, help="Save the effective configuration to this file"
    )
    parser.add_argument("--report", type=pathlib.Path, default=None, help="Export an analytics report to this file")
    parser.add_argument("--report-format", choices=REPORT_FORMATS, default="json", help="Analytics report format")
    parser.add_argument(
        "--report-period", type=_period, default="all", help="Report period: 'all' or a day count like '30days'"
    )
    parser.add_argument("--report-only", action="store_true", help="Export the report without cleaning")
    parser.add_argument("--restore", metavar="BACKUP_ID", default=None, help="Restore a backup and exit")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    app = UltraCleaner(args)
    try:
        return app.run()
    except ConfigurationError as e:
        app.ui.print_error(f"Configuration error: {e}")
        return 1
    except KeyboardInterrupt:
        app.ui.print_warning("\nOperation cancelled by user.")
        return 0
    except Exception as e:
        app.ui.print_error(f"Unexpected error: {e}")
        if args.verbose:
            app.ui.console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
