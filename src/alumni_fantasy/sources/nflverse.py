import io
import logging
import zlib
from typing import Dict, List, Optional

import pandas as pd

from ..alumni_types import FRESH, STALE, UNAVAILABLE, DefensiveSnap, PlayerStatLine, SourceResult, SourceRuntimeConfig
from ..colleges import is_placeholder
from ..defense import normalize_team, resolve_columns
from ..errors import HttpStatusError, NotYetAvailableError, StatsNotAvailableError, TransportError
from ..scoring import compute_fantasy_points, compute_historical_averages, normalize_scoring_format
from .asset_cache import (
    CachedAsset,
    asset_cache_path,
    default_cache_root,
    discard_cached_asset,
    read_cached_asset,
    write_cached_asset,
)
from .http import http_request


logger = logging.getLogger(__name__)

RELEASE_BASE_URL = "https://github.com/nflverse/nflverse-data/releases/download"

PLAYER_STAT_COLUMNS = {
    "player_id": ("player_id", "gsis_id", "id"),
    "name": ("player_display_name", "player_name", "full_name", "name"),
    "position": ("position", "pos", "position_group"),
    "team": ("team", "recent_team", "team_abbr", "club_code"),
    "week": ("week", "week_num", "game_week", "week_number"),
    "season": ("season",),
    "college": ("college", "college_name"),
}

SNAP_COUNT_COLUMNS = {
    "player_id": ("pfr_player_id", "player_id", "gsis_id"),
    "name": ("player", "player_name", "full_name", "name"),
    "position": ("position", "pos"),
    "team": ("team", "club_code", "recent_team"),
    "week": ("week", "game_week", "week_num", "week_number"),
    "season": ("season",),
    "snaps": ("defense_snaps", "def_snaps", "defensive_snaps"),
}


def _parse_csv(content: bytes, filename: str) -> pd.DataFrame:
    compression = "gzip" if filename.endswith(".gz") else None
    return pd.read_csv(io.BytesIO(content), compression=compression, low_memory=False)


def _text(value) -> str:
    if value is None or (isinstance(value, float) and value != value):
        return ""
    return str(value).strip()


class NflverseClient:
    """Release-asset reader with an on-disk cache and stale fallback."""

    def __init__(self, runtime: Optional[SourceRuntimeConfig] = None, base_url: str = RELEASE_BASE_URL):
        self.runtime = runtime or SourceRuntimeConfig()
        self.base_url = base_url.rstrip("/")
        self.cache_root = self.runtime.cache_dir or default_cache_root()

    def asset_url(self, release: str, filename: str) -> str:
        return f"{self.base_url}/{release}/{filename}"

    def _cache_path(self, release: str, filename: str):
        return asset_cache_path(root=self.cache_root, release=release, filename=filename)

    def _fallback(self, cached: Optional[CachedAsset], source: str, reason: str, error: Optional[Exception] = None) -> SourceResult:
        if cached is not None:
            logger.warning("serving stale %s (%s, age %.0fs)", source, reason, cached.age_seconds)
            return SourceResult(STALE, cached.content, reason=reason, source=source, age_seconds=cached.age_seconds)
        if error is not None:
            raise error
        return SourceResult(UNAVAILABLE, None, reason=reason, source=source)

    def fetch_asset(self, release: str, filename: str) -> SourceResult:
        source = self.asset_url(release, filename)
        path = self._cache_path(release, filename)
        cached = read_cached_asset(path, self.runtime.cache_ttl_seconds)
        if cached is not None and cached.fresh:
            logger.debug("cache hit for %s", source)
            return SourceResult(FRESH, cached.content, reason="cache", source=source, age_seconds=cached.age_seconds)

        try:
            content = http_request(
                source,
                headers={"User-Agent": self.runtime.user_agent},
                timeout=self.runtime.timeout_seconds,
                retries=self.runtime.retries,
                backoff_seconds=self.runtime.backoff_seconds,
            )
        except HttpStatusError as exc:
            if exc.status == 404:
                return self._fallback(cached, source, "not_published")
            return self._fallback(cached, source, "transport_error", exc)
        except TransportError as exc:
            return self._fallback(cached, source, "transport_error", exc)

        for warning in write_cached_asset(path, content):
            logger.warning(warning)
        return SourceResult(FRESH, content, reason="live", source=source, age_seconds=0.0)

    def load_frame(self, release: str, filename: str) -> SourceResult:
        result = self.fetch_asset(release, filename)
        if not result.usable:
            raise NotYetAvailableError(f"{release}/{filename}")
        try:
            frame = _parse_csv(result.value, filename)
        except (OSError, EOFError, zlib.error, pd.errors.ParserError) as exc:
            logger.warning("discarding unreadable asset %s: %s", result.source, exc)
            discard_cached_asset(self._cache_path(release, filename))
            result = self.fetch_asset(release, filename)
            if not result.usable:
                raise NotYetAvailableError(f"{release}/{filename}") from exc
            frame = _parse_csv(result.value, filename)
        return SourceResult(result.status, frame, reason=result.reason, source=result.source, age_seconds=result.age_seconds)

    def player_stats(self, season: int) -> SourceResult:
        return self.load_frame("stats_player", f"stats_player_week_{int(season)}.csv.gz")

    def team_week_stats(self, season: int) -> SourceResult:
        return self.load_frame("stats_team", f"stats_team_week_{int(season)}.csv.gz")

    def snap_counts(self, season: int) -> SourceResult:
        return self.load_frame("snap_counts", f"snap_counts_{int(season)}.csv")

    def _season_rows(self, frame: pd.DataFrame, columns: Dict[str, Optional[str]], season: int) -> pd.DataFrame:
        if columns.get("season") is None:
            return frame
        seasons = pd.to_numeric(frame[columns["season"]], errors="coerce")
        return frame[seasons.isna() | (seasons == int(season))]

    def weekly_stat_lines(self, season: int, week: int, scoring_format: str = "ppr") -> SourceResult:
        scoring_format = normalize_scoring_format(scoring_format)
        result = self.player_stats(season)
        frame = result.value
        columns = resolve_columns(frame.columns, PLAYER_STAT_COLUMNS, required=("player_id", "week"), dataset="player_stats")
        frame = self._season_rows(frame, columns, season)
        weeks = pd.to_numeric(frame[columns["week"]], errors="coerce")
        rows = frame[weeks == int(week)]
        if rows.empty:
            raise StatsNotAvailableError(season, week)

        lines: List[PlayerStatLine] = []
        for record in rows.to_dict("records"):
            player_id = _text(record.get(columns["player_id"]))
            if not player_id:
                continue
            college = _text(record.get(columns["college"])) if columns["college"] else ""
            lines.append(
                PlayerStatLine(
                    player_id=player_id,
                    name=_text(record.get(columns["name"])) if columns["name"] else player_id,
                    position=_text(record.get(columns["position"])).upper() if columns["position"] else "",
                    team=normalize_team(record.get(columns["team"])) if columns["team"] else "",
                    points=compute_fantasy_points(record, scoring_format),
                    college_raw=None if is_placeholder(college) else college,
                )
            )
        return SourceResult(result.status, lines, reason=result.reason, source=result.source, age_seconds=result.age_seconds)

    def historical_averages(self, season: int, upto_week: int, scoring_format: str = "ppr") -> Dict[str, float]:
        if int(upto_week) <= 1:
            return {}
        frame = self.player_stats(season).value
        columns = resolve_columns(frame.columns, PLAYER_STAT_COLUMNS, required=("player_id", "week"), dataset="player_stats")
        frame = self._season_rows(frame, columns, season)
        return compute_historical_averages(
            frame,
            upto_week,
            scoring_format,
            player_column=columns["player_id"],
            week_column=columns["week"],
        )

    def defensive_snaps(self, season: int, week: int) -> List[DefensiveSnap]:
        frame = self.snap_counts(season).value
        columns = resolve_columns(frame.columns, SNAP_COUNT_COLUMNS, required=("team", "week", "snaps"), dataset="snap_counts")
        frame = self._season_rows(frame, columns, season)
        weeks = pd.to_numeric(frame[columns["week"]], errors="coerce")

        snaps: List[DefensiveSnap] = []
        for record in frame[weeks == int(week)].to_dict("records"):
            count = pd.to_numeric(record.get(columns["snaps"]), errors="coerce")
            if pd.isna(count) or float(count) <= 0:
                continue
            team = normalize_team(record.get(columns["team"]))
            name = _text(record.get(columns["name"])) if columns["name"] else ""
            player_id = _text(record.get(columns["player_id"])) if columns["player_id"] else ""
            snaps.append(
                DefensiveSnap(
                    player_id=player_id or f"{name.lower()}|{team}",
                    name=name,
                    position=_text(record.get(columns["position"])).upper() if columns["position"] else "",
                    team=team,
                    snaps=float(count),
                )
            )
        return snaps
