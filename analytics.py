#!/usr/bin/env python3
"""
Cleanup Analytics

Records what every cleanup session did and keeps a JSON history of past
sessions. Summary statistics, trends and reports are always computed from
that history, so the JSON, CSV and HTML reports show the same numbers. Dry
runs are recorded but do not count towards totals, trends or categories.

History file: <analytics location>/analytics.json
"""

import csv
import io
import json
import logging
import pathlib
import secrets
from collections import Counter, defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Optional

from rich import box
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from tzlocal import get_localzone

from auxiliary import format_bytes, now_ms, parse_period_days

logger = logging.getLogger("ultraclean.analytics")

HISTORY_FILENAME = "analytics.json"
HISTORY_VERSION = "1.0"
TREND_WINDOW = 7
TOP_CATEGORY_LIMIT = 5
DAY_MS = 24 * 60 * 60 * 1000
REPORT_FORMATS = ("json", "csv", "html")
INSUFFICIENT_DATA = "insufficient_data"


def _new_id(prefix: str) -> str:
    return f"{prefix}_{now_ms()}_{secrets.token_hex(5)}"


@dataclass
class AnalyticsEvent:
    """Outcome of one processed cleanup target"""

    timestamp: str
    category: str
    description: str = ""
    files_affected: int = 0
    size_recovered: int = 0
    duration_ms: int = 0
    success: bool = True
    error: Optional[str] = None
    id: str = field(default_factory=lambda: _new_id("op"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "category": self.category,
            "description": self.description,
            "filesAffected": self.files_affected,
            "sizeRecovered": self.size_recovered,
            "duration": self.duration_ms,
            "success": self.success,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AnalyticsEvent":
        return cls(
            id=data.get("id") or _new_id("op"),
            timestamp=data["timestamp"],
            category=data.get("category", "general"),
            description=data.get("description", ""),
            files_affected=int(data.get("filesAffected", 0)),
            size_recovered=int(data.get("sizeRecovered", 0)),
            duration_ms=int(data.get("duration", 0)),
            success=bool(data.get("success", True)),
            error=data.get("error"),
        )


@dataclass
class SessionSummary:
    files_cleaned: int = 0
    space_recovered: int = 0
    areas_processed: int = 0
    errors: int = 0
    duration_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "filesCleaned": self.files_cleaned,
            "spaceRecovered": self.space_recovered,
            "areasProcessed": self.areas_processed,
            "errors": self.errors,
            "duration": self.duration_ms,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionSummary":
        return cls(
            files_cleaned=int(data.get("filesCleaned", 0)),
            space_recovered=int(data.get("spaceRecovered", 0)),
            areas_processed=int(data.get("areasProcessed", 0)),
            errors=int(data.get("errors", 0)),
            duration_ms=int(data.get("duration", 0)),
        )


@dataclass
class SessionRecord:
    """One complete run of the cleaner"""

    id: str
    start_time_ms: int
    end_time_ms: Optional[int] = None
    mode: str = "interactive"
    dry_run: bool = False
    operations: list[AnalyticsEvent] = field(default_factory=list)
    summary: SessionSummary = field(default_factory=SessionSummary)

    @property
    def space_recovered(self) -> int:
        return self.summary.space_recovered

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "startTime": self.start_time_ms,
            "endTime": self.end_time_ms,
            "mode": self.mode,
            "dryRun": self.dry_run,
            "operations": [op.to_dict() for op in self.operations],
            "summary": self.summary.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionRecord":
        return cls(
            id=data["id"],
            start_time_ms=int(data["startTime"]),
            end_time_ms=int(data["endTime"]) if data.get("endTime") is not None else None,
            mode=data.get("mode", "interactive"),
            dry_run=bool(data.get("dryRun", False)),
            operations=[AnalyticsEvent.from_dict(op) for op in data.get("operations", [])],
            summary=SessionSummary.from_dict(data.get("summary", {})),
        )


@dataclass
class HistorySummary:
    total_sessions: int = 0
    total_files_cleaned: int = 0
    total_space_recovered: int = 0
    average_session_size: float = 0.0
    most_active_day: Optional[str] = None
    favorite_cleanup_mode: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "totalSessions": self.total_sessions,
            "totalFilesCleaned": self.total_files_cleaned,
            "totalSpaceRecovered": self.total_space_recovered,
            "averageSessionSize": self.average_session_size,
            "mostActiveDay": self.most_active_day,
            "favoriteCleanupMode": self.favorite_cleanup_mode,
        }


@dataclass
class Trend:
    trend: str
    recent_average: Optional[float] = None
    previous_average: Optional[float] = None
    change_percent: Optional[float] = None

    @property
    def insufficient(self) -> bool:
        return self.trend == INSUFFICIENT_DATA

    def to_dict(self) -> dict:
        if self.insufficient:
            return {"trend": self.trend}
        return {
            "trend": self.trend,
            "recentAverage": self.recent_average,
            "previousAverage": self.previous_average,
            "changePercent": self.change_percent,
        }


@dataclass
class CategoryStats:
    category: str
    operations: int = 0
    files: int = 0
    size: int = 0


@dataclass
class ReportData:
    """The aggregated view every report format is rendered from"""

    generated: str
    period: str
    summary: HistorySummary
    sessions: list[SessionRecord]
    trends: Trend
    top_categories: list[CategoryStats]
    time_analysis: dict

    def to_dict(self) -> dict:
        return {
            "generated": self.generated,
            "period": self.period,
            "data": {
                "summary": self.summary.to_dict(),
                "sessions": [s.to_dict() for s in self.sessions],
                "trends": self.trends.to_dict(),
                "topCategories": [asdict(c) for c in self.top_categories],
                "timeAnalysis": self.time_analysis,
            },
        }


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def _utc_day(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, timezone.utc).date().isoformat()


def _most_common(values: list[str]) -> Optional[str]:
    """Most frequent value; ties go to the value seen first"""
    if not values:
        return None
    counts = Counter(values)
    # Counter keeps first-seen order and max() returns the first maximal item
    return max(counts.items(), key=lambda item: item[1])[0]


def applied_sessions(sessions: list[SessionRecord]) -> list[SessionRecord]:
    """Sessions that actually deleted something; dry runs only previewed"""
    return [s for s in sessions if not s.dry_run]


def compute_summary(sessions: list[SessionRecord]) -> HistorySummary:
    sessions = applied_sessions(sessions)
    summary = HistorySummary(total_sessions=len(sessions))
    if not sessions:
        return summary
    summary.total_files_cleaned = sum(s.summary.files_cleaned for s in sessions)
    summary.total_space_recovered = sum(s.summary.space_recovered for s in sessions)
    summary.average_session_size = summary.total_space_recovered / len(sessions)
    summary.most_active_day = _most_common([_utc_day(s.start_time_ms) for s in sessions])
    summary.favorite_cleanup_mode = _most_common([s.mode for s in sessions])
    return summary


def calculate_trends(sessions: list[SessionRecord]) -> Trend:
    """Compare mean space recovered of the last 7 sessions with the 7 before them"""
    sessions = applied_sessions(sessions)
    if len(sessions) < 2:
        return Trend(INSUFFICIENT_DATA)

    ordered = sorted(sessions, key=lambda s: s.start_time_ms)
    recent = ordered[-TREND_WINDOW:]
    previous = ordered[-2 * TREND_WINDOW : -TREND_WINDOW]
    if not recent or not previous:
        return Trend(INSUFFICIENT_DATA)

    recent_avg = sum(s.space_recovered for s in recent) / len(recent)
    previous_avg = sum(s.space_recovered for s in previous) / len(previous)

    if recent_avg > previous_avg:
        trend = "increasing"
    elif recent_avg < previous_avg:
        trend = "decreasing"
    else:
        trend = "stable"

    change = (recent_avg - previous_avg) / previous_avg * 100 if previous_avg > 0 else 0.0
    return Trend(trend, recent_avg, previous_avg, change)


def top_categories(sessions: list[SessionRecord], limit: int = TOP_CATEGORY_LIMIT) -> list[CategoryStats]:
    stats: dict[str, CategoryStats] = {}
    for session in applied_sessions(sessions):
        for op in session.operations:
            entry = stats.setdefault(op.category, CategoryStats(op.category))
            entry.operations += 1
            entry.files += op.files_affected
            entry.size += op.size_recovered
    return sorted(stats.values(), key=lambda c: c.size, reverse=True)[:limit]


def time_analysis(sessions: list[SessionRecord], tz: Optional[tzinfo] = None) -> dict:
    """Distribution of session start times over local hours and weekdays"""
    tz = tz or get_localzone()
    hours = [0] * 24
    days: dict[str, int] = defaultdict(int)
    for session in sessions:
        started = datetime.fromtimestamp(session.start_time_ms / 1000, tz)
        hours[started.hour] += 1
        days[started.strftime("%A")] += 1

    return {
        "favoriteHour": hours.index(max(hours)) if sessions else None,
        "favoriteDay": max(days.items(), key=lambda item: item[1])[0] if days else None,
        "hourDistribution": hours,
        "dayDistribution": dict(days),
    }


# ---------------------------------------------------------------------------
# Report rendering
# ---------------------------------------------------------------------------


def render_json(report: ReportData) -> str:
    return json.dumps(report.to_dict(), indent=2)


def render_csv(report: ReportData) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    summary = report.summary
    writer.writerow(["Metric", "Value"])
    writer.writerow(["Total Sessions", summary.total_sessions])
    writer.writerow(["Total Files Cleaned", summary.total_files_cleaned])
    writer.writerow(["Total Space Recovered", summary.total_space_recovered])
    writer.writerow(["Average Session Size", summary.average_session_size])
    writer.writerow(["Most Active Day", summary.most_active_day or ""])

    if not report.trends.insufficient:
        writer.writerow(["Trend", report.trends.trend])
        writer.writerow(["Trend Change %", f"{report.trends.change_percent:.2f}"])

    for index, cat in enumerate(report.top_categories, 1):
        writer.writerow([f"Top Category {index}", cat.category])
        writer.writerow([f"Top Category {index} Size", cat.size])
    return buffer.getvalue()


def _report_renderables(report: ReportData) -> list:
    summary = report.summary
    parts: list = [
        Panel(
            f"[bold]Ultra Cleaner - Analytics Report[/bold]\n[dim]Generated: {report.generated}  Period: {report.period}[/dim]",
            box=box.ROUNDED,
        )
    ]

    table = Table(title="Summary Statistics", box=box.SIMPLE, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total Sessions", str(summary.total_sessions))
    table.add_row("Total Files Cleaned", f"{summary.total_files_cleaned:,}")
    table.add_row("Total Space Recovered", format_bytes(summary.total_space_recovered))
    table.add_row("Average Session Size", format_bytes(round(summary.average_session_size)))
    if summary.most_active_day:
        table.add_row("Most Active Day", summary.most_active_day)
    parts.append(table)

    if report.trends.insufficient:
        parts.append(Text("Trend: not enough sessions yet", style="dim"))
    else:
        style = {"increasing": "green", "decreasing": "red"}.get(report.trends.trend, "yellow")
        parts.append(
            Text(f"Trend: {report.trends.trend.capitalize()} ({report.trends.change_percent:+.1f}%)", style=style)
        )

    categories = Table(title="Top Categories", box=box.ROUNDED)
    categories.add_column("Category", style="cyan")
    categories.add_column("Operations", justify="right")
    categories.add_column("Files", justify="right")
    categories.add_column("Space Recovered", justify="right", style="yellow")
    for cat in report.top_categories:
        categories.add_row(cat.category, str(cat.operations), f"{cat.files:,}", format_bytes(cat.size))
    parts.append(categories)

    if report.time_analysis.get("favoriteDay"):
        parts.append(
            Text(
                f"Most active weekday: {report.time_analysis['favoriteDay']}  "
                f"Most active hour: {report.time_analysis['favoriteHour']}:00"
            )
        )
    return parts


def render_html(report: ReportData) -> str:
    console = Console(record=True, file=io.StringIO(), width=100, force_terminal=True)
    console.print(Group(*_report_renderables(report)))
    return console.export_html(inline_styles=True)


RENDERERS = {"json": render_json, "csv": render_csv, "html": render_html}


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------


class AnalyticsManager:
    """Tracks the current session and maintains the persisted session history"""

    def __init__(self, location: pathlib.Path, enabled: bool = True, max_history_days: int = 90):
        self.location = pathlib.Path(location)
        self.history_file = self.location / HISTORY_FILENAME
        self.enabled = enabled
        self.max_history_days = max_history_days
        self.sessions: list[SessionRecord] = []
        self.created = datetime.now(timezone.utc).isoformat()
        self.current: Optional[SessionRecord] = None

    # -- persistence ---------------------------------------------------------

    def initialize(self):
        """Load the history and drop sessions past the retention window"""
        if not self.enabled:
            return
        try:
            self.location.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Failed to initialize analytics: {e}")
            return
        self.load()
        if self.prune():
            self.save()
        logger.debug(f"Analytics system initialized: {self.location}")

    def load(self):
        if not self.history_file.exists():
            self.sessions = []
            return
        try:
            with self.history_file.open(encoding="utf-8") as f:
                data = json.load(f)
            self.sessions = [SessionRecord.from_dict(s) for s in data.get("sessions", [])]
            self.created = data.get("created", self.created)
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Analytics history unreadable, starting fresh: {e}")
            self.sessions = []

    def save(self):
        data = {
            "version": HISTORY_VERSION,
            "created": self.created,
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
            "sessions": [s.to_dict() for s in self.sessions],
            "summary": self.summary.to_dict(),
        }
        try:
            with self.history_file.open("w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.warning(f"Failed to save analytics: {e}")

    def prune(self, now: Optional[int] = None) -> int:
        """Remove sessions older than max_history_days; returns how many were removed"""
        cutoff = (now if now is not None else now_ms()) - self.max_history_days * DAY_MS
        before = len(self.sessions)
        self.sessions = [s for s in self.sessions if s.start_time_ms > cutoff]
        return before - len(self.sessions)

    @property
    def summary(self) -> HistorySummary:
        return compute_summary(self.sessions)

    # -- session tracking ----------------------------------------------------

    def start_session(self, mode: str = "interactive", dry_run: bool = False) -> SessionRecord:
        self.current = SessionRecord(id=_new_id("session"), start_time_ms=now_ms(), mode=mode, dry_run=dry_run)
        return self.current

    def track_operation(
        self,
        category: str,
        description: str,
        files: int,
        size: int,
        success: bool,
        error: Optional[str] = None,
        duration_ms: int = 0,
    ):
        if not self.enabled or self.current is None:
            return
        self.current.operations.append(
            AnalyticsEvent(
                timestamp=datetime.now(timezone.utc).isoformat(),
                category=category,
                description=description,
                files_affected=files,
                size_recovered=size,
                duration_ms=duration_ms,
                success=success,
                error=error,
            )
        )
        summary = self.current.summary
        if success:
            summary.files_cleaned += files
            summary.space_recovered += size
            summary.areas_processed += 1
        else:
            summary.errors += 1

    def end_session(self) -> Optional[SessionRecord]:
        """Close the current session and append it to the history.

        Dry-run sessions are stored too, flagged with ``dryRun``; summaries and
        trends leave them out.
        """
        session = self.current
        self.current = None
        if session is None:
            return None

        session.end_time_ms = max(now_ms(), session.start_time_ms)
        session.summary.duration_ms = session.end_time_ms - session.start_time_ms
        if not self.enabled:
            return session

        self.sessions.append(session)
        self.prune()
        self.save()
        return session

    # -- reports -------------------------------------------------------------

    def build_report_data(self, period: str = "all", now: Optional[int] = None) -> ReportData:
        sessions = self.sessions
        days = parse_period_days(period)
        if days is not None:
            cutoff = (now if now is not None else now_ms()) - days * DAY_MS
            sessions = [s for s in sessions if s.start_time_ms > cutoff]

        return ReportData(
            generated=datetime.now(timezone.utc).isoformat(),
            period=period,
            summary=compute_summary(self.sessions),
            sessions=sessions,
            trends=calculate_trends(sessions),
            top_categories=top_categories(sessions),
            time_analysis=time_analysis(sessions),
        )

    def generate_report(self, report_format: str = "json", period: str = "all") -> str:
        if report_format not in RENDERERS:
            raise ValueError(f"Unknown report format: {report_format} (expected one of: {', '.join(REPORT_FORMATS)})")
        return RENDERERS[report_format](self.build_report_data(period))

    def export_report(self, target: pathlib.Path, report_format: str = "json", period: str = "all") -> pathlib.Path:
        content = self.generate_report(report_format, period)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        logger.info(f"Analytics exported to: {target}")
        return target
