import dataclasses
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from ..alumni_types import FRESH, STALE, UNAVAILABLE, PlayerStatLine, SourceResult
from ..colleges import is_placeholder, normalize_person_name
from ..defense import normalize_team
from ..errors import NotYetAvailableError


logger = logging.getLogger(__name__)

ROSTER_ASSETS = (
    ("weekly_rosters", "roster_week_{season}.csv.gz"),
    ("rosters", "roster_{season}.csv"),
)
PLAYERS_ASSET = ("players", "players.csv")

COLLEGE_COLUMNS = ("college", "college_name", "college_short")
NAME_COLUMNS = ("full_name", "player_name", "display_name", "name", "player")
TEAM_COLUMNS = ("team", "recent_team", "latest_team", "team_abbr")
ID_COLUMNS = (
    "player_id",
    "gsis_id",
    "gsis_it_id",
    "nfl_id",
    "pfr_id",
    "pfr_player_id",
    "esb_id",
    "espn_id",
    "sportradar_id",
    "yahoo_id",
    "sleeper_id",
)


def name_team_key(name: Any, team: Any) -> str:
    return f"{normalize_person_name(name)}|{normalize_team(team)}"


def _first_column(columns: Sequence[str], options: Sequence[str]) -> Optional[str]:
    lookup = {str(column).lower(): column for column in columns}
    for option in options:
        if option in lookup:
            return lookup[option]
    return None


def _id_columns(columns: Sequence[str]) -> List[str]:
    found = [column for column in columns if str(column).lower() in ID_COLUMNS]
    extra = [column for column in columns if str(column).lower().endswith("_id") and column not in found]
    return found + extra


def _clean(value: Any) -> str:
    if value is None or (isinstance(value, float) and value != value):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = " ".join(str(value).split())
    return "" if is_placeholder(text) else text


class RosterCollegeLookup:
    """Player -> raw college text, keyed by any known id or by name and team."""

    def __init__(self):
        self.by_id: Dict[str, str] = {}
        self.by_name_team: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self.by_id) + len(self.by_name_team)

    def add_frame(self, frame: pd.DataFrame) -> int:
        columns = list(frame.columns)
        college_column = _first_column(columns, COLLEGE_COLUMNS)
        if college_column is None:
            return 0
        name_column = _first_column(columns, NAME_COLUMNS)
        team_column = _first_column(columns, TEAM_COLUMNS)
        id_columns = _id_columns(columns)

        added = 0
        for record in frame.to_dict("records"):
            college = _clean(record.get(college_column))
            if not college:
                continue
            for column in id_columns:
                player_id = _clean(record.get(column))
                if player_id and player_id not in self.by_id:
                    self.by_id[player_id] = college
                    added += 1
            name = _clean(record.get(name_column)) if name_column else ""
            team = _clean(record.get(team_column)) if team_column else ""
            if name and team:
                key = name_team_key(name, team)
                if key not in self.by_name_team:
                    self.by_name_team[key] = college
                    added += 1
        return added

    def college_for(self, player_id: Any = None, alt_ids: Iterable[Any] = (), name: Any = None, team: Any = None) -> Optional[str]:
        for candidate in [player_id, *alt_ids]:
            key = _clean(candidate)
            if key and key in self.by_id:
                return self.by_id[key]
        if name and team:
            return self.by_name_team.get(name_team_key(name, team))
        return None


def load_roster_lookup(client: Any, season: int) -> SourceResult:
    """Join season rosters with the players master into one lookup.

    Every asset is optional; the result is unavailable only when none loads.
    """
    lookup = RosterCollegeLookup()
    statuses: List[str] = []
    sources: List[str] = []
    assets = [(release, pattern.format(season=int(season))) for release, pattern in ROSTER_ASSETS]
    assets.append(PLAYERS_ASSET)

    for release, filename in assets:
        try:
            result = client.load_frame(release, filename)
        except NotYetAvailableError:
            logger.info("roster asset %s/%s not available", release, filename)
            continue
        lookup.add_frame(result.value)
        statuses.append(result.status)
        sources.append(result.source)

    if not statuses:
        return SourceResult(UNAVAILABLE, lookup, reason="no_roster_assets")
    status = STALE if STALE in statuses else FRESH
    return SourceResult(status, lookup, reason="joined", source=",".join(sources))


def attach_colleges(stat_lines: Iterable[PlayerStatLine], lookup: RosterCollegeLookup) -> List[PlayerStatLine]:
    attached: List[PlayerStatLine] = []
    for line in stat_lines:
        if is_placeholder(line.college_raw):
            college = lookup.college_for(line.player_id, line.alt_ids, line.name, line.team)
            if college:
                line = dataclasses.replace(line, college_raw=college)
        attached.append(line)
    return attached
