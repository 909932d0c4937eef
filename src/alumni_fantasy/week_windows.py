import math
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from .alumni_types import KickoffEstimate, WeekReference, WeekWindow


REGULAR_SEASON_WEEKS = 18
WEEK = timedelta(days=7)
CUTOFF_HOUR_UTC = 10


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def clamp_week(value: Any) -> int:
    try:
        week = float(value)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(week):
        return 1
    if week < 1:
        return 1
    if week > REGULAR_SEASON_WEEKS:
        return REGULAR_SEASON_WEEKS
    return int(week)


def preseason_week_cap(season: int) -> int:
    # The league dropped its fourth preseason game in 2021.
    return 3 if int(season) >= 2021 else 4


def labor_day(season: int) -> datetime:
    september_first = datetime(int(season), 9, 1, tzinfo=timezone.utc)
    offset = (7 - september_first.weekday()) % 7
    return september_first + timedelta(days=offset)


def week_one_cutoff(season: int) -> datetime:
    """Tuesday 10:00 UTC after the opening week; stats for week 1 are final here."""
    return labor_day(season) + timedelta(days=8, hours=CUTOFF_HOUR_UTC)


def week_window(season: int, week: Any) -> WeekWindow:
    normalized = clamp_week(week)
    end = week_one_cutoff(season) + (normalized - 1) * WEEK
    return WeekWindow(season=int(season), week=normalized, start=end - WEEK, end=end)


def last_completed_week(now: Optional[datetime] = None) -> WeekReference:
    current = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    season = current.year
    cutoff = week_one_cutoff(season)
    if current < cutoff:
        season -= 1
        cutoff = week_one_cutoff(season)

    elapsed_weeks = (current - cutoff) // WEEK
    return WeekReference(season, clamp_week(elapsed_weeks + 1), source="elapsed_weeks")


def estimate_week_for_kickoff(season: int, kickoff: Optional[datetime], fallback_week: int = 1) -> KickoffEstimate:
    """Estimate the calendar week a kickoff belongs to.

    Regular-season kickoffs land in weeks 1..18. Earlier kickoffs are counted
    back into the preseason, capped at the season's preseason depth; week 0
    means the kickoff predates every supported preseason slot.
    """
    if kickoff is None:
        window = week_window(season, fallback_week)
        return KickoffEstimate(int(season), window.week, window.week, window.start, window.end)

    kick = _as_utc(kickoff)
    week_one_start = week_window(season, 1).start
    raw_week = int((kick - week_one_start) // WEEK) + 1

    if raw_week >= 1:
        window = week_window(season, raw_week)
        return KickoffEstimate(int(season), window.week, raw_week, window.start, window.end)

    cap = preseason_week_cap(season)
    offset_weeks = max(raw_week - 1, -(cap + 1))
    start = week_one_start + offset_weeks * WEEK
    week = max(0, min(cap, cap + raw_week))
    return KickoffEstimate(int(season), week, raw_week, start, start + WEEK)
