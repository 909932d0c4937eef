from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .alumni_types import DefenseApproximation, DefenseRow, DefenseTeam, DefenseWeek, DefensiveSnap
from .errors import DefenseUnavailableError, NotYetAvailableError, SchemaMismatchError


TEAM_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "ARZ": "ARI",
        "PHX": "ARI",
        "BLT": "BAL",
        "CLV": "CLE",
        "GBP": "GB",
        "GNB": "GB",
        "HST": "HOU",
        "HTX": "HOU",
        "CLT": "IND",
        "JAC": "JAX",
        "KAN": "KC",
        "KCC": "KC",
        "SD": "LAC",
        "SDC": "LAC",
        "SDG": "LAC",
        "LA": "LAR",
        "RAM": "LAR",
        "STL": "LAR",
        "LVR": "LV",
        "OAK": "LV",
        "NEW": "NE",
        "NWE": "NE",
        "NOL": "NO",
        "NOR": "NO",
        "PHL": "PHI",
        "SFO": "SF",
        "TBB": "TB",
        "TAM": "TB",
        "HTN": "TEN",
        "OIL": "TEN",
        "WFT": "WAS",
        "WSH": "WAS",
    }
)

DEFENSE_COLUMN_CANDIDATES: Mapping[str, Sequence[str]] = MappingProxyType(
    {
        "team": ("team", "team_abbr", "posteam", "abbr", "club_code", "recent_team"),
        "opponent": ("opponent_team", "opponent", "opp", "opp_team", "opp_club_code", "defteam", "opponent_abbr"),
        "week": ("week", "week_num", "game_week", "week_number"),
        "season": ("season", "season_year"),
        "points": ("points_for", "points", "points_scored", "team_score", "score"),
        "sacks_allowed": ("sacks_suffered", "sacks_allowed", "pass_sacks_allowed", "times_sacked"),
        "interceptions_thrown": ("passing_interceptions", "interceptions_thrown", "interceptions", "ints"),
        "fumbles_lost": ("fumbles_lost", "fumbles_lost_offense", "total_fumbles_lost", "offense_fumbles_lost"),
    }
)

REQUIRED_DEFENSE_FIELDS = ("team", "opponent", "week", "points")

FUMBLE_COMPONENT_COLUMNS = ("rushing_fumbles_lost", "receiving_fumbles_lost", "sack_fumbles_lost")

_POINTS_ALLOWED_THRESHOLDS = np.array([0, 6, 13, 20, 27, 34], dtype=float)
_POINTS_ALLOWED_BONUS = (10, 7, 4, 1, 0, -1, -4)


def normalize_team(value: Any) -> str:
    code = str(value or "").strip().upper()
    return TEAM_ALIASES.get(code, code)


def resolve_columns(
    columns: Iterable[Any],
    candidates: Mapping[str, Sequence[str]],
    required: Sequence[str] = (),
    dataset: str = "dataset",
) -> Dict[str, Optional[str]]:
    """Map each logical field to the first candidate header present."""
    by_lower = {}
    for column in columns:
        by_lower.setdefault(str(column).strip().lower(), column)

    resolved: Dict[str, Optional[str]] = {}
    for field_name, options in candidates.items():
        resolved[field_name] = None
        for option in options:
            if option.lower() in by_lower:
                resolved[field_name] = by_lower[option.lower()]
                break

    missing = [name for name in required if resolved.get(name) is None]
    if missing:
        raise SchemaMismatchError(dataset, missing)
    return resolved


def points_allowed_bonus(points_allowed: float) -> int:
    index = int(np.searchsorted(_POINTS_ALLOWED_THRESHOLDS, float(points_allowed), side="left"))
    return _POINTS_ALLOWED_BONUS[index]


def compute_dst_points(
    points_allowed: float,
    sacks: float,
    interceptions: float,
    fumbles_recovered: float,
    safeties: float = 0,
    defensive_tds: float = 0,
    return_tds: float = 0,
) -> float:
    total = (
        float(sacks)
        + 2.0 * float(interceptions)
        + 2.0 * float(fumbles_recovered)
        + 2.0 * float(safeties)
        + 6.0 * float(defensive_tds)
        + 6.0 * float(return_tds)
        + points_allowed_bonus(points_allowed)
    )
    return round(total, 2)


def _numeric(frame: pd.DataFrame, column: Optional[str]) -> pd.Series:
    if column is None:
        return pd.Series(0.0, index=frame.index)
    return pd.to_numeric(frame[column], errors="coerce").fillna(0.0)


def _fumbles_lost(frame: pd.DataFrame, columns: Dict[str, Optional[str]], warnings: List[str]) -> pd.Series:
    if columns.get("fumbles_lost"):
        return _numeric(frame, columns["fumbles_lost"])
    components = resolve_columns(frame.columns, {name: (name,) for name in FUMBLE_COMPONENT_COLUMNS})
    present = [column for column in components.values() if column is not None]
    if present:
        return sum((_numeric(frame, column) for column in present), pd.Series(0.0, index=frame.index))
    warnings.append("fumbles_lost_column_missing")
    return pd.Series(0.0, index=frame.index)


def _offense_by_team(frame: pd.DataFrame, columns: Dict[str, Optional[str]], warnings: List[str]) -> Dict[str, Dict[str, Any]]:
    for optional in ("sacks_allowed", "interceptions_thrown"):
        if columns.get(optional) is None:
            warnings.append(f"{optional}_column_missing")

    table = pd.DataFrame(
        {
            "team": frame[columns["team"]].map(normalize_team),
            "opponent": frame[columns["opponent"]].map(normalize_team),
            "points": _numeric(frame, columns["points"]),
            "sacks_allowed": _numeric(frame, columns.get("sacks_allowed")),
            "interceptions_thrown": _numeric(frame, columns.get("interceptions_thrown")),
            "fumbles_lost": _fumbles_lost(frame, columns, warnings),
        }
    )

    offense: Dict[str, Dict[str, Any]] = {}
    for record in table.to_dict("records"):
        team = record["team"]
        if not team or team in offense:
            continue
        offense[team] = record
    return offense


def approximate_defense_from_frame(
    frame: Optional[pd.DataFrame],
    season: int,
    week: Optional[int] = None,
    source: str = "",
) -> DefenseApproximation:
    """Score each team's defense from the offense its opponent produced.

    Points allowed, sacks, interceptions and fumble recoveries for team A are
    read from the opponent's points scored, sacks allowed, interceptions
    thrown and fumbles lost in the same week.
    """
    requested = int(week) if week is not None else None
    warnings: List[str] = []
    if frame is None or frame.empty:
        return DefenseApproximation(int(season), None, requested, [], [], source, "no_rows", warnings)

    columns = resolve_columns(frame.columns, DEFENSE_COLUMN_CANDIDATES, REQUIRED_DEFENSE_FIELDS, dataset="team_week_stats")

    data = frame
    if columns["season"] is not None:
        seasons = pd.to_numeric(data[columns["season"]], errors="coerce")
        data = data[seasons == int(season)]
    weeks = pd.to_numeric(data[columns["week"]], errors="coerce")
    data = data[weeks.notna()]
    weeks = weeks[weeks.notna()].astype(int)

    weeks_available = sorted({int(value) for value in weeks.tolist()})
    if not weeks_available:
        return DefenseApproximation(int(season), None, requested, [], [], source, "no_rows", warnings)

    fallback_reason = None
    if requested is not None and requested in weeks_available:
        target = requested
    else:
        target = weeks_available[-1]
        if requested is not None:
            fallback_reason = "requested_week_unavailable"

    offense = _offense_by_team(data[weeks == target], columns, warnings)

    rows: List[DefenseRow] = []
    for team, record in offense.items():
        opponent = offense.get(record["opponent"])
        if opponent is None:
            warnings.append(f"opponent_row_missing:{team}:{record['opponent']}")
            continue
        points_allowed = float(opponent["points"])
        sacks = int(opponent["sacks_allowed"])
        interceptions = int(opponent["interceptions_thrown"])
        fumbles = int(opponent["fumbles_lost"])
        rows.append(
            DefenseRow(
                team=team,
                week=target,
                points_allowed=points_allowed,
                sacks=sacks,
                interceptions=interceptions,
                fumbles_recovered=fumbles,
                score=compute_dst_points(points_allowed, sacks, interceptions, fumbles),
            )
        )

    rows.sort(key=lambda row: (-row.score, row.team))
    return DefenseApproximation(
        season=int(season),
        week=target,
        requested_week=requested,
        rows=rows,
        weeks_available=weeks_available,
        source=source,
        fallback_reason=fallback_reason,
        warnings=warnings,
    )


def approximate_defense(season: int, week: Optional[int] = None, client: Any = None) -> DefenseApproximation:
    if client is None:
        from .sources.nflverse import NflverseClient

        client = NflverseClient()

    try:
        result = client.team_week_stats(season)
    except NotYetAvailableError as exc:
        raise DefenseUnavailableError(season, str(exc)) from exc

    approximation = approximate_defense_from_frame(result.value, season, week=week, source=result.source)
    if result.is_stale:
        approximation.warnings.append(f"stale_team_stats:{result.reason}")
    return approximation


def build_defense_week(rows: Iterable[DefenseRow], snaps: Iterable[DefensiveSnap], week: Optional[int] = None) -> DefenseWeek:
    """Attach defenders' snap counts to their team's defense score."""
    teams: Dict[str, DefenseTeam] = {}
    resolved_week = week
    for row in rows:
        team = normalize_team(row.team)
        teams[team] = DefenseTeam(team=team, dst_points=float(row.score))
        if resolved_week is None:
            resolved_week = row.week

    for snap in snaps:
        team = normalize_team(snap.team)
        entry = teams.get(team)
        if entry is None or snap.snaps <= 0:
            continue
        entry.players.append(snap)
        entry.total_snaps += float(snap.snaps)

    return DefenseWeek(week=int(resolved_week or 0), teams=teams)
