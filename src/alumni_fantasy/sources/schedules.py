import logging
import urllib.parse
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

import pandas as pd

from ..alumni_types import FRESH, UNAVAILABLE, CollegiateGame, ScheduleGame, SourceResult, SourceRuntimeConfig
from ..colleges import CollegeResolver, default_resolver
from ..defense import normalize_team, resolve_columns
from ..errors import PersistenceExhaustedError
from .http import http_json


logger = logging.getLogger(__name__)

NFL_SCHEDULE_RELEASE = "schedules"
NFL_SCHEDULE_FILE = "sched_{season}.csv"
CFBD_GAMES_URL = "https://api.collegefootballdata.com/games"
CFB_SLATE_TTL_SECONDS = 6 * 60 * 60

EASTERN = ZoneInfo("America/New_York")

# Every other game type, recognized or not, is kept and classified later.
POSTSEASON_GAME_TYPES = frozenset({"POST", "POSTSEASON", "WC", "DIV", "CONF", "CON", "SB"})

NFL_SCHEDULE_COLUMNS = {
    "week": ("week", "game_week", "week_number", "weeknum"),
    "game_type": ("game_type", "gametype", "game_type2", "season_type"),
    "game_id": ("game_id", "gsis_id", "gsid"),
    "home_team": ("home_team", "home", "home_team_abbr"),
    "away_team": ("away_team", "away", "away_team_abbr"),
    "gameday": ("gameday", "gamedate", "game_date"),
    "gametime": ("gametime", "game_time"),
}

KICKOFF_COLUMNS = ("start_time", "start_time_utc", "game_datetime", "gamedatetime", "kickoff")


def parse_kickoff(value: Any) -> Optional[datetime]:
    text = str(value or "").strip()
    if not text or text.lower() == "nan":
        return None
    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _combine_eastern(day: Any, clock: Any) -> Optional[datetime]:
    day_text = str(day or "").strip()
    clock_text = str(clock or "").strip()
    if not day_text or day_text.lower() == "nan":
        return None
    if not clock_text or clock_text.lower() == "nan":
        clock_text = "13:00"
    try:
        local = datetime.strptime(f"{day_text[:10]} {clock_text[:5]}", "%Y-%m-%d %H:%M")
    except ValueError:
        return None
    return local.replace(tzinfo=EASTERN).astimezone(timezone.utc)


def _cell(record: Dict[str, Any], column: Optional[str]) -> str:
    if column is None:
        return ""
    value = record.get(column)
    if value is None or (isinstance(value, float) and value != value):
        return ""
    return str(value).strip()


def parse_nfl_schedule(frame: pd.DataFrame, season: int) -> List[ScheduleGame]:
    columns = resolve_columns(frame.columns, NFL_SCHEDULE_COLUMNS, required=("week",), dataset="nfl_schedule")
    kickoff_columns = [column for column in frame.columns if str(column).lower() in KICKOFF_COLUMNS]

    games: List[ScheduleGame] = []
    for record in frame.to_dict("records"):
        game_type = _cell(record, columns["game_type"]).upper()
        if game_type.replace("-", "_").replace(" ", "_") in POSTSEASON_GAME_TYPES:
            continue
        week = pd.to_numeric(_cell(record, columns["week"]), errors="coerce")
        if pd.isna(week):
            continue

        kickoff = None
        for column in kickoff_columns:
            kickoff = parse_kickoff(record.get(column))
            if kickoff is not None:
                break
        if kickoff is None:
            kickoff = _combine_eastern(_cell(record, columns["gameday"]), _cell(record, columns["gametime"]))

        games.append(
            ScheduleGame(
                season=int(season),
                week=int(week),
                kickoff=kickoff,
                home_team=normalize_team(_cell(record, columns["home_team"])),
                away_team=normalize_team(_cell(record, columns["away_team"])),
                game_type=game_type or "REG",
                game_id=_cell(record, columns["game_id"]),
            )
        )

    far_future = datetime.max.replace(tzinfo=timezone.utc)
    games.sort(key=lambda game: (game.week, game.kickoff or far_future))
    return games


class NflScheduleSource:
    def __init__(self, client: Any):
        self.client = client

    def fetch(self, season: int) -> SourceResult:
        result = self.client.load_frame(NFL_SCHEDULE_RELEASE, NFL_SCHEDULE_FILE.format(season=int(season)))
        games = parse_nfl_schedule(result.value, season)
        return SourceResult(result.status, games, reason=result.reason, source=result.source, age_seconds=result.age_seconds)


def _pick(item: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if item.get(key) not in (None, ""):
            return item.get(key)
    return None


def parse_cfbd_games(
    payload: Any,
    season: int,
    season_type: str = "regular",
    resolver: Optional[CollegeResolver] = None,
) -> List[CollegiateGame]:
    resolver = resolver or default_resolver()
    games: List[CollegiateGame] = []
    for item in payload if isinstance(payload, list) else []:
        if not isinstance(item, dict):
            continue
        raw_week = _pick(item, "week")
        week = pd.to_numeric(raw_week, errors="coerce") if raw_week is not None else None
        if week is None or pd.isna(week):
            continue
        home_raw = str(_pick(item, "homeTeam", "home_team") or "").strip()
        away_raw = str(_pick(item, "awayTeam", "away_team") or "").strip()
        games.append(
            CollegiateGame(
                season=int(_pick(item, "season") or season),
                week=int(week),
                kickoff=parse_kickoff(_pick(item, "startDate", "start_date")),
                home_raw=home_raw,
                away_raw=away_raw,
                home=resolver.canonical(home_raw),
                away=resolver.canonical(away_raw),
                season_type=str(_pick(item, "seasonType", "season_type") or season_type),
                game_id=str(_pick(item, "id") or ""),
            )
        )
    return games


def _game_to_record(game: CollegiateGame) -> Dict[str, Any]:
    return {
        "id": game.game_id,
        "season": game.season,
        "week": game.week,
        "seasonType": game.season_type,
        "startDate": game.kickoff.isoformat() if game.kickoff else None,
        "homeTeam": game.home_raw,
        "awayTeam": game.away_raw,
    }


class CfbdScheduleSource:
    """Collegiate schedule from the CollegeFootballData games endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        runtime: Optional[SourceRuntimeConfig] = None,
        cache: Any = None,
        resolver: Optional[CollegeResolver] = None,
        base_url: str = CFBD_GAMES_URL,
    ):
        self.api_key = api_key
        self.runtime = runtime or SourceRuntimeConfig()
        self.cache = cache
        self.resolver = resolver
        self.base_url = base_url

    @staticmethod
    def cache_key(season: int, season_type: str) -> str:
        return f"cfb:slate:{int(season)}:{season_type}"

    def fetch(self, season: int, season_type: str = "regular") -> SourceResult:
        key = self.cache_key(season, season_type)
        if self.cache is not None:
            cached = self.cache.read(key)
            if isinstance(cached, list):
                logger.debug("collegiate slate cache hit for %s", key)
                return SourceResult(FRESH, parse_cfbd_games(cached, season, season_type, self.resolver), reason="cache", source=key)

        if not self.api_key:
            return SourceResult(UNAVAILABLE, [], reason="missing_api_key", source=self.base_url)

        query = urllib.parse.urlencode({"year": int(season), "seasonType": season_type})
        url = f"{self.base_url}?{query}"
        payload = http_json(
            url,
            headers={"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"},
            timeout=self.runtime.timeout_seconds,
            retries=self.runtime.retries,
            backoff_seconds=self.runtime.backoff_seconds,
        )
        games = parse_cfbd_games(payload, season, season_type, self.resolver)

        if self.cache is not None and games:
            try:
                self.cache.persist(key, [_game_to_record(game) for game in games], ttl=CFB_SLATE_TTL_SECONDS)
            except PersistenceExhaustedError as exc:
                logger.warning("collegiate slate not cached: %s", exc)
        return SourceResult(FRESH, games, reason="live", source=url)


def games_for_week(games: Iterable[CollegiateGame], week: int) -> List[CollegiateGame]:
    return [game for game in games if int(game.week) == int(week)]
