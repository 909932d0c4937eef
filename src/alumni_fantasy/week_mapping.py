from collections import Counter
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .alumni_types import PRESEASON, REGULAR, ScheduleGame, ScheduleWindow, WeekReference
from .week_windows import CUTOFF_HOUR_UTC, REGULAR_SEASON_WEEKS, WEEK


# Collegiate week -> professional week when neither the schedule nor the
# kickoffs can place a collegiate week. Tuned against the 2023-2024 calendars.
CFB_WEEK_OFFSETS: Mapping[int, int] = MappingProxyType({week: min(week + 2, REGULAR_SEASON_WEEKS) for week in range(1, 17)})

POLICY_PER_WEEK = "per_week"
POLICY_PER_GAME = "per_game"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_game_type(raw: Any) -> str:
    text = str(raw or "").strip().upper().replace("-", "_").replace(" ", "_")
    if text.startswith("PRE") or text in {"HOF", "HALL_OF_FAME"}:
        return PRESEASON
    return REGULAR


def tuesday_cutoff(kickoff: datetime) -> datetime:
    kick = _as_utc(kickoff)
    monday = (kick - timedelta(days=kick.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    cutoff = monday + timedelta(days=1, hours=CUTOFF_HOUR_UTC)
    if cutoff <= kick:
        cutoff += WEEK
    return cutoff


def build_week_windows(games: Iterable[ScheduleGame]) -> List[ScheduleWindow]:
    grouped: Dict[Tuple[int, int], Dict[str, Any]] = {}
    for game in games:
        if game.kickoff is None:
            continue
        key = (int(game.season), int(game.week))
        kick = _as_utc(game.kickoff)
        entry = grouped.setdefault(key, {"max_kick": kick, "count": 0, "phases": set()})
        if kick > entry["max_kick"]:
            entry["max_kick"] = kick
        entry["count"] += 1
        entry["phases"].add(normalize_game_type(game.game_type))

    windows: List[ScheduleWindow] = []
    for (season, week), entry in sorted(grouped.items()):
        end = tuesday_cutoff(entry["max_kick"])
        windows.append(
            ScheduleWindow(
                season=season,
                week=week,
                start=end - WEEK,
                end=end,
                game_count=int(entry["count"]),
                phases=tuple(sorted(entry["phases"])),
            )
        )
    return windows


def _ordered(windows: Sequence[ScheduleWindow]) -> List[ScheduleWindow]:
    return sorted(windows, key=lambda item: (item.season, item.week))


def map_kickoff_to_week(
    kickoff: Optional[datetime],
    windows: Sequence[ScheduleWindow],
    fallback_season: int,
) -> WeekReference:
    """Map a kickoff to the most recent professional week already final at kickoff."""
    if not windows or kickoff is None:
        return WeekReference(int(fallback_season), 1, source="no_windows")

    kick = _as_utc(kickoff)
    chosen: Optional[ScheduleWindow] = None
    for window in _ordered(windows):
        if window.end <= kick:
            chosen = window
        else:
            break

    if chosen is None:
        return WeekReference(int(fallback_season), REGULAR_SEASON_WEEKS, source="before_first_window")
    return WeekReference(chosen.season, chosen.week, source="kickoff_window")


def _latest_kickoff(games: Iterable[Any]) -> Optional[datetime]:
    kicks = [_as_utc(game.kickoff) for game in games if getattr(game, "kickoff", None) is not None]
    return max(kicks) if kicks else None


def map_cfb_week_to_week(
    games: Iterable[Any],
    windows: Sequence[ScheduleWindow],
    cfb_week: int,
    fallback_season: int,
    offsets: Optional[Mapping[int, int]] = None,
) -> WeekReference:
    if not windows:
        return WeekReference(int(fallback_season), 1, source="no_windows")

    ordered = _ordered(windows)
    preseason = [window for window in ordered if PRESEASON in window.phases]
    regular = [window for window in ordered if REGULAR in window.phases]

    week = int(cfb_week)
    if week <= 1 and preseason:
        target = preseason[-1]
        return WeekReference(target.season, target.week, source="preseason_window")
    if week > 1 and regular:
        target = regular[min(max(week - 2, 0), len(regular) - 1)]
        return WeekReference(target.season, target.week, source="regular_window")

    latest = _latest_kickoff(games)
    if latest is not None:
        mapped = map_kickoff_to_week(latest, ordered, fallback_season)
        return WeekReference(mapped.season, mapped.week, source="latest_kickoff")

    table = CFB_WEEK_OFFSETS if offsets is None else offsets
    target_week = table.get(week, min(max(week + 2, 1), REGULAR_SEASON_WEEKS))
    return WeekReference(ordered[-1].season, int(target_week), source="offset_table")


def map_cfb_games_to_weeks(
    games: Iterable[Any],
    windows: Sequence[ScheduleWindow],
    fallback_season: int,
) -> List[Tuple[Any, Optional[WeekReference]]]:
    assignments: List[Tuple[Any, Optional[WeekReference]]] = []
    for game in games:
        kickoff = getattr(game, "kickoff", None)
        if kickoff is None or not windows:
            assignments.append((game, None))
            continue
        assignments.append((game, map_kickoff_to_week(kickoff, windows, fallback_season)))
    return assignments


def dominant_week(assignments: Iterable[Tuple[Any, Optional[WeekReference]]]) -> Optional[WeekReference]:
    counts: Counter = Counter()
    for _, reference in assignments:
        if reference is not None:
            counts[(reference.season, reference.week)] += 1
    if not counts:
        return None
    season, week = max(counts, key=lambda key: (counts[key], key))
    return WeekReference(season, week, source="dominant_game_week")


def align_cfb_week(
    games: Sequence[Any],
    windows: Sequence[ScheduleWindow],
    cfb_week: int,
    fallback_season: int,
    policy: str = POLICY_PER_WEEK,
    offsets: Optional[Mapping[int, int]] = None,
) -> WeekReference:
    if policy not in (POLICY_PER_WEEK, POLICY_PER_GAME):
        raise ValueError(f"unknown alignment policy: {policy}")

    if policy == POLICY_PER_GAME:
        dominant = dominant_week(map_cfb_games_to_weeks(games, windows, fallback_season))
        if dominant is not None:
            return dominant
    return map_cfb_week_to_week(games, windows, cfb_week, fallback_season, offsets=offsets)


def guess_cfb_season(now: datetime) -> int:
    current = _as_utc(now)
    return current.year if current.month >= 7 else current.year - 1


def detect_target_cfb_week(games: Iterable[Any], now: Optional[datetime] = None) -> Optional[int]:
    """Return the first collegiate week that has not kicked off yet.

    Once every listed week has started, the last listed week is returned.
    """
    current = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    earliest: Dict[int, Optional[datetime]] = {}
    for game in games:
        week = int(getattr(game, "week", 0) or 0)
        if week <= 0:
            continue
        kickoff = getattr(game, "kickoff", None)
        known = earliest.get(week)
        if kickoff is None:
            earliest.setdefault(week, None)
            continue
        kick = _as_utc(kickoff)
        if known is None or kick < known:
            earliest[week] = kick

    fallback: Optional[int] = None
    for week in sorted(earliest):
        first_kick = earliest[week]
        if first_kick is None:
            continue
        if current < first_kick:
            return week
        fallback = week
    return fallback
