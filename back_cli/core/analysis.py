"""Streak and time-spent analytics over recorded sessions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from back_cli.core.constants import AVERAGE_WINDOW_DAYS, DAY_BOUNDARY_HOUR
from back_cli.core.history import SessionRecord
from back_cli.utils.formatting import format_duration


def _local(value: datetime) -> datetime:
    return value.astimezone() if value.tzinfo is not None else value


def activity_day(value: datetime, boundary_hour: int = DAY_BOUNDARY_HOUR) -> date:
    """Calendar day a session counts towards; early-morning sessions count as the previous day."""
    return (_local(value) - timedelta(hours=boundary_hour)).date()


def longest_streak(days: Sequence[date]) -> int:
    """Longest run of consecutive days in ``days`` (any order, duplicates allowed)."""
    unique = sorted(set(days))
    if not unique:
        return 0
    longest = current = 1
    for previous, day in zip(unique, unique[1:]):
        current = current + 1 if (day - previous).days == 1 else 1
        longest = max(longest, current)
    return longest


def current_streak(days: Sequence[date], today: date) -> int:
    """Run ending at the latest day, counted only if that day is today or yesterday."""
    unique = set(days)
    if not unique:
        return 0
    latest = max(unique)
    if latest not in (today, today - timedelta(days=1)):
        return 0
    streak = 1
    cursor = latest - timedelta(days=1)
    while cursor in unique:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


@dataclass(frozen=True)
class AnalyticsSummary:
    sessions_today: int
    current_streak: int
    longest_streak: int
    last_session_seconds: float
    today_total_seconds: float
    daily_average: float
    window_days: int = AVERAGE_WINDOW_DAYS

    @property
    def current_streak_description(self) -> str:
        return f"{self.current_streak} days" if self.current_streak > 0 else "Start today"

    @property
    def longest_streak_description(self) -> str:
        return f"{self.longest_streak} days" if self.longest_streak > 0 else "—"

    @property
    def time_spent_today_description(self) -> str:
        return format_duration(self.today_total_seconds)

    @property
    def daily_average_description(self) -> str:
        return f"{self.daily_average:.2f}"

    @property
    def last_session_description(self) -> str:
        if self.last_session_seconds <= 0:
            return "—"
        return format_duration(self.last_session_seconds)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessions_today": self.sessions_today,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_session_seconds": round(self.last_session_seconds, 3),
            "today_total_seconds": round(self.today_total_seconds, 3),
            "daily_average": round(self.daily_average, 4),
            "window_days": self.window_days,
        }


def build_analytics(
    records: Iterable[SessionRecord],
    now: Optional[datetime] = None,
    day_boundary_hour: int = DAY_BOUNDARY_HOUR,
    window_days: int = AVERAGE_WINDOW_DAYS,
) -> Optional[AnalyticsSummary]:
    """Aggregate records into an analytics summary; None when there are no records."""
    ordered: List[SessionRecord] = sorted(records, key=lambda record: record.started_at, reverse=True)
    if not ordered:
        return None

    window_days = max(int(window_days), 1)
    today = activity_day(now or datetime.now().astimezone(), day_boundary_hour)
    days = [activity_day(record.started_at, day_boundary_hour) for record in ordered]

    todays = [record for record, day in zip(ordered, days) if day == today]
    window_start = today - timedelta(days=window_days - 1)
    in_window = sum(1 for day in days if window_start <= day <= today)

    return AnalyticsSummary(
        sessions_today=len(todays),
        current_streak=current_streak(days, today),
        longest_streak=longest_streak(days),
        last_session_seconds=ordered[0].duration_seconds,
        today_total_seconds=sum(record.duration_seconds for record in todays),
        daily_average=in_window / window_days,
        window_days=window_days,
    )
