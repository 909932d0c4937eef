from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from .alumni_types import DefenseWeek, Performer, PlayerStatLine, SchoolAggregate
from .colleges import UNKNOWN_COLLEGE, CollegeResolver, default_resolver
from .defense import normalize_team


SCORING_FORMATS: Mapping[str, float] = {"ppr": 1.0, "half-ppr": 0.5, "standard": 0.0}

_FORMAT_ALIASES = {
    "ppr": "ppr",
    "full": "ppr",
    "half": "half-ppr",
    "half-ppr": "half-ppr",
    "half_ppr": "half-ppr",
    "standard": "standard",
    "std": "standard",
    "non-ppr": "standard",
}

MODE_WEEKLY = "weekly"
MODE_AVG = "avg"
DEFENSE_NONE = "none"
DEFENSE_APPROX = "approx"

LINEUP_SLOTS = ("QB", "TE", "WR", "WR", "RB", "RB")
KICKER_SLOT = "K"
FLEX_POSITIONS = frozenset({"WR", "RB", "TE"})
DEFENSIVE_POSITIONS = frozenset({"LB", "DB", "DL", "DE", "DT", "S", "CB", "OLB", "ILB", "EDGE", "FS", "SS", "NT"})
DEFENSE_CONTRIBUTOR_LIMIT = 11

_STAT_KEYS: Mapping[str, Sequence[str]] = {
    "passing_yards": ("passing_yards", "pass_yds"),
    "passing_tds": ("passing_tds", "pass_td"),
    "interceptions": ("passing_interceptions", "interceptions", "pass_int"),
    "rushing_yards": ("rushing_yards", "rush_yds"),
    "rushing_tds": ("rushing_tds", "rush_td"),
    "receptions": ("receptions", "rec"),
    "receiving_yards": ("receiving_yards", "rec_yds"),
    "receiving_tds": ("receiving_tds", "rec_td"),
    "fg_made": ("fg_made", "fgm"),
    "pat_made": ("pat_made", "xpm"),
}

_FUMBLE_KEYS = ("rushing_fumbles_lost", "receiving_fumbles_lost", "sack_fumbles_lost")


def normalize_scoring_format(value: Any) -> str:
    key = str(value or "ppr").strip().lower()
    if key not in _FORMAT_ALIASES:
        raise ValueError(f"unknown scoring format: {value}")
    return _FORMAT_ALIASES[key]


def _number(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if number != number else number


def _stat(stats: Mapping[str, Any], name: str) -> float:
    for key in _STAT_KEYS[name]:
        if key in stats:
            return _number(stats.get(key))
    return 0.0


def compute_fantasy_points(stats: Mapping[str, Any], scoring_format: str = "ppr") -> float:
    per_reception = SCORING_FORMATS[normalize_scoring_format(scoring_format)]
    if "fumbles_lost" in stats:
        fumbles = _number(stats.get("fumbles_lost"))
    else:
        fumbles = sum(_number(stats.get(key)) for key in _FUMBLE_KEYS)

    points = (
        _stat(stats, "passing_yards") / 25.0
        + _stat(stats, "passing_tds") * 4.0
        - _stat(stats, "interceptions") * 2.0
        + _stat(stats, "rushing_yards") / 10.0
        + _stat(stats, "rushing_tds") * 6.0
        + _stat(stats, "receiving_yards") / 10.0
        + _stat(stats, "receiving_tds") * 6.0
        + _stat(stats, "receptions") * per_reception
        - fumbles * 2.0
        + _stat(stats, "fg_made") * 3.0
        + _stat(stats, "pat_made") * 1.0
    )
    return round(points, 2)


def compute_historical_averages(
    frame: Optional[pd.DataFrame],
    week: int,
    scoring_format: str = "ppr",
    player_column: str = "player_id",
    week_column: str = "week",
) -> Dict[str, float]:
    """Average weekly points per player over weeks 1..week-1."""
    if frame is None or frame.empty or int(week) <= 1:
        return {}
    weeks = pd.to_numeric(frame[week_column], errors="coerce")
    prior = frame[(weeks >= 1) & (weeks < int(week))]
    if prior.empty:
        return {}

    points = [compute_fantasy_points(record, scoring_format) for record in prior.to_dict("records")]
    table = pd.DataFrame({"player_id": prior[player_column].astype(str).tolist(), "points": points})
    means = table.groupby("player_id", sort=True)["points"].mean()
    return {str(player_id): round(float(value), 2) for player_id, value in means.items()}


@dataclass
class _Entry:
    order: int
    line: PlayerStatLine
    contribution: float


def _average_for(line: PlayerStatLine, averages: Mapping[str, float]) -> Optional[float]:
    for key in (line.player_id,) + tuple(line.alt_ids):
        if key and str(key) in averages:
            return float(averages[str(key)])
    return None


def _select_lineup(entries: List[_Entry], include_kicker: bool) -> List[_Entry]:
    ranked = sorted(entries, key=lambda entry: -entry.contribution)
    used = set()

    def take(eligible) -> Optional[_Entry]:
        for entry in ranked:
            if entry.order in used:
                continue
            if entry.line.position.upper() in eligible:
                used.add(entry.order)
                return entry
        return None

    slots: List[frozenset] = [frozenset({position}) for position in LINEUP_SLOTS]
    if include_kicker:
        slots.append(frozenset({KICKER_SLOT}))
    slots.append(FLEX_POSITIONS)

    chosen: List[_Entry] = []
    for eligible in slots:
        picked = take(eligible)
        if picked is not None:
            chosen.append(picked)
    return chosen


def defense_credits(entries: Iterable[PlayerStatLine], defense_week: DefenseWeek) -> List[Dict[str, Any]]:
    """Share each team's defense score among its defenders by snap count."""
    snaps_by_team: Dict[str, Dict[str, float]] = {}
    for team, entry in defense_week.teams.items():
        snaps_by_team[team] = {str(player.player_id): float(player.snaps) for player in entry.players}

    credits: List[Dict[str, Any]] = []
    for line in entries:
        if line.position.upper() not in DEFENSIVE_POSITIONS:
            continue
        team = normalize_team(line.team)
        entry = defense_week.teams.get(team)
        if entry is None or entry.total_snaps <= 0:
            continue
        snaps = snaps_by_team[team].get(str(line.player_id), 0.0)
        credit = entry.dst_points * snaps / entry.total_snaps
        if credit > 0:
            credits.append({"label": line.name or f"ID {line.player_id}", "player_id": line.player_id, "points": credit})

    credits.sort(key=lambda item: -item["points"])
    return credits[:DEFENSE_CONTRIBUTOR_LIMIT]


def aggregate_by_college(
    stat_lines: Iterable[PlayerStatLine],
    week: int,
    scoring_format: str = "ppr",
    mode: str = MODE_WEEKLY,
    historical_averages: Optional[Mapping[str, float]] = None,
    include_kicker: bool = True,
    defense_mode: str = DEFENSE_NONE,
    defense_week: Optional[DefenseWeek] = None,
    resolver: Optional[CollegeResolver] = None,
) -> List[SchoolAggregate]:
    normalize_scoring_format(scoring_format)
    if mode not in (MODE_WEEKLY, MODE_AVG):
        raise ValueError(f"unknown selection mode: {mode}")
    if defense_mode not in (DEFENSE_NONE, DEFENSE_APPROX):
        raise ValueError(f"unknown defense mode: {defense_mode}")

    resolver = resolver or default_resolver()
    averages = dict(historical_averages or {})
    use_averages = mode == MODE_AVG and int(week) > 1

    groups: Dict[str, List[_Entry]] = {}
    for order, line in enumerate(stat_lines):
        contribution = float(line.points)
        if use_averages:
            average = _average_for(line, averages)
            if average is not None:
                contribution = average
        for school in resolver.resolve_many(line.college_raw, player_id=line.player_id, name=line.name):
            groups.setdefault(school, []).append(_Entry(order, line, contribution))

    results: List[SchoolAggregate] = []
    for school, entries in groups.items():
        performers = [
            Performer(
                name=entry.line.name,
                position=entry.line.position.upper(),
                team=entry.line.team,
                points=round(entry.contribution, 2),
                college=school,
                player_id=entry.line.player_id,
                week_points=float(entry.line.points),
            )
            for entry in _select_lineup(entries, include_kicker)
        ]

        if defense_mode == DEFENSE_APPROX and defense_week is not None:
            credits = defense_credits([entry.line for entry in entries], defense_week)
            performers.append(
                Performer(
                    name="Defense",
                    position="DEF",
                    team=None,
                    points=round(sum(item["points"] for item in credits), 2),
                    college=school,
                    player_id=f"DEF-{school}-{int(week)}",
                    contributors=[dict(item, points=round(item["points"], 2)) for item in credits],
                )
            )

        total = round(sum(performer.points for performer in performers), 2)
        results.append(SchoolAggregate(school=school, total_points=total, performers=performers))

    results.sort(key=lambda aggregate: (-aggregate.total_points, aggregate.school))
    return results


def count_resolution_gaps(stat_lines: Iterable[PlayerStatLine], resolver: Optional[CollegeResolver] = None) -> int:
    resolver = resolver or default_resolver()
    return sum(
        1
        for line in stat_lines
        if resolver.resolve_many(line.college_raw, player_id=line.player_id, name=line.name) == [UNKNOWN_COLLEGE]
    )
