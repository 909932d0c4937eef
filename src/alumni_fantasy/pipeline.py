import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .alumni_types import (
    CollegiateGame,
    DefenseApproximation,
    DefenseWeek,
    DefensiveSnap,
    PersistResult,
    PlayerStatLine,
    ScheduleGame,
    SchoolAggregate,
    WeekReference,
)
from .colleges import UNKNOWN_COLLEGE, CollegeResolver, default_resolver
from .contracts import validate_scores_envelope
from .defense import approximate_defense, build_defense_week
from .errors import AlumniFantasyError, InvalidPayloadError, NotYetAvailableError
from .matchups import score_matchups
from .scoring import (
    DEFENSE_APPROX,
    DEFENSE_NONE,
    DEFENSIVE_POSITIONS,
    MODE_AVG,
    MODE_WEEKLY,
    aggregate_by_college,
    count_resolution_gaps,
    normalize_scoring_format,
)
from .sources.nflverse import NflverseClient
from .sources.rosters import RosterCollegeLookup, attach_colleges, load_roster_lookup
from .sources.schedules import games_for_week
from .storage.tiered import TieredCache, cache_key
from .week_mapping import POLICY_PER_WEEK, align_cfb_week, build_week_windows
from .week_windows import last_completed_week


logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def resolve_nfl_week(
    cfb_season: int,
    cfb_week: int,
    schedule_games: Iterable[ScheduleGame],
    cfb_games: Iterable[CollegiateGame],
    policy: str = POLICY_PER_WEEK,
    offsets: Optional[Mapping[int, int]] = None,
) -> WeekReference:
    """Pick the professional week scored for a collegiate week.

    The prior professional season is the fallback: opening collegiate weeks
    predate the new season's first cutoff.
    """
    windows = build_week_windows(schedule_games)
    week_games = games_for_week(cfb_games, cfb_week)
    return align_cfb_week(week_games, windows, cfb_week, int(cfb_season) - 1, policy=policy, offsets=offsets)


def align_for_season(
    cfb_season: int,
    cfb_week: int,
    schedule_source: Any,
    cfb_source: Any = None,
    policy: str = POLICY_PER_WEEK,
) -> Tuple[WeekReference, List[str]]:
    warnings: List[str] = []
    try:
        schedule = schedule_source.fetch(cfb_season).value or []
    except NotYetAvailableError as exc:
        warnings.append(f"nfl_schedule_unavailable: {exc}")
        schedule = []

    cfb_games: List[CollegiateGame] = []
    if cfb_source is not None:
        result = cfb_source.fetch(cfb_season)
        if result.usable:
            cfb_games = list(result.value or [])
        else:
            warnings.append(f"cfb_schedule_unavailable: {result.reason}")

    return resolve_nfl_week(cfb_season, cfb_week, schedule, cfb_games, policy=policy), warnings


def _load_defense(client: Any, season: int, week: int) -> Tuple[DefenseApproximation, DefenseWeek, List[DefensiveSnap]]:
    approximation = approximate_defense(season, week=week, client=client)
    target_week = approximation.week if approximation.week is not None else week
    snaps = client.defensive_snaps(season, target_week)
    return approximation, build_defense_week(approximation.rows, snaps, week=target_week), snaps


def ensure_defensive_lines(
    stat_lines: Sequence[PlayerStatLine],
    snaps: Iterable[DefensiveSnap],
    lookup: Optional[RosterCollegeLookup] = None,
) -> List[PlayerStatLine]:
    """Add a zero-point line for every defender who logged snaps."""
    lines = list(stat_lines)
    known = {line.player_id for line in lines}
    for snap in snaps:
        if snap.player_id in known or snap.position.upper() not in DEFENSIVE_POSITIONS:
            continue
        college = lookup.college_for(snap.player_id, name=snap.name, team=snap.team) if lookup is not None else None
        lines.append(
            PlayerStatLine(
                player_id=snap.player_id,
                name=snap.name,
                position=snap.position.upper(),
                team=snap.team,
                points=0.0,
                college_raw=college,
            )
        )
        known.add(snap.player_id)
    return lines


def _run_parallel(tasks: Dict[str, Callable[[], Any]]) -> Tuple[Dict[str, Any], Dict[str, Exception]]:
    outcomes: Dict[str, Any] = {}
    failures: Dict[str, Exception] = {}
    with ThreadPoolExecutor(max_workers=max(1, len(tasks))) as pool:
        future_map = {pool.submit(task): name for name, task in tasks.items()}
        for future in as_completed(future_map):
            name = future_map[future]
            try:
                outcomes[name] = future.result()
            except AlumniFantasyError as exc:
                failures[name] = exc
    return outcomes, failures


def _envelope(data: Dict[str, Any], quality_flags: List[str], warnings: List[str]) -> Dict[str, Any]:
    return {
        "data": data,
        "source_timestamp": _utc_now(),
        "quality_flags": quality_flags,
        "warnings": warnings,
    }


def aggregates_to_dicts(aggregates: Iterable[SchoolAggregate]) -> List[Dict[str, Any]]:
    return [asdict(aggregate) for aggregate in aggregates]


def compute_school_scores(
    season: int,
    week: int,
    scoring_format: str = "ppr",
    mode: str = MODE_WEEKLY,
    include_kicker: bool = True,
    defense_mode: str = DEFENSE_NONE,
    client: Any = None,
    resolver: Optional[CollegeResolver] = None,
) -> Dict[str, Any]:
    """Score every school's alumni for one professional week.

    Stat lines, roster affiliations, historical averages and defense inputs
    are fetched concurrently and joined before aggregation. Missing data
    degrades the payload (see ``quality_flags``); only a transport failure
    on the player stats with nothing cached propagates.
    """
    scoring_format = normalize_scoring_format(scoring_format)
    if mode not in (MODE_WEEKLY, MODE_AVG):
        raise ValueError(f"unknown selection mode: {mode}")
    if defense_mode not in (DEFENSE_NONE, DEFENSE_APPROX):
        raise ValueError(f"unknown defense mode: {defense_mode}")

    client = client or NflverseClient()
    resolver = resolver or default_resolver()
    quality_flags: List[str] = []
    warnings: List[str] = []

    tasks: Dict[str, Callable[[], Any]] = {
        "stats": partial(client.weekly_stat_lines, season, week, scoring_format),
        "rosters": partial(load_roster_lookup, client, season),
    }
    if mode == MODE_AVG and int(week) > 1:
        tasks["averages"] = partial(client.historical_averages, season, week, scoring_format)
    if defense_mode == DEFENSE_APPROX:
        tasks["defense"] = partial(_load_defense, client, season, week)

    outcomes, failures = _run_parallel(tasks)

    data: Dict[str, Any] = {
        "season": int(season),
        "week": int(week),
        "format": scoring_format,
        "mode": mode,
        "include_kicker": bool(include_kicker),
        "defense": DEFENSE_NONE,
        "defense_requested": defense_mode,
        "defense_week": None,
        "results": [],
        "unknown_count": 0,
        "stats_status": None,
        "stats_source": None,
        "fallback_reason": None,
    }

    stats_error = failures.get("stats")
    if stats_error is not None:
        if not isinstance(stats_error, NotYetAvailableError):
            raise stats_error
        logger.info("stats pending for season %s week %s: %s", season, week, stats_error)
        quality_flags.append("stats_pending")
        warnings.append(str(stats_error))
        data.update({"stats_status": "unavailable", "fallback_reason": "not_published"})
        return _envelope(data, quality_flags, warnings)

    stats = outcomes["stats"]
    stat_lines: List[PlayerStatLine] = list(stats.value or [])
    data.update({"stats_status": stats.status, "stats_source": stats.source})
    if stats.is_stale:
        quality_flags.append("stale_stats")
        data["fallback_reason"] = stats.reason

    lookup: Optional[RosterCollegeLookup] = None
    if "rosters" in failures:
        warnings.append(f"roster_lookup_failed: {failures['rosters']}")
    elif outcomes["rosters"].usable:
        lookup = outcomes["rosters"].value
        stat_lines = attach_colleges(stat_lines, lookup)
    else:
        warnings.append("roster_lookup_unavailable")

    averages: Dict[str, float] = {}
    if "averages" in failures:
        logger.warning("historical averages unavailable: %s", failures["averages"])
        warnings.append(f"historical_averages_unavailable: {failures['averages']}")
        quality_flags.append("averages_fallback_weekly")
    elif "averages" in outcomes:
        averages = outcomes["averages"]

    defense_week: Optional[DefenseWeek] = None
    if "defense" in failures:
        logger.warning("defense omitted: %s", failures["defense"])
        quality_flags.append("defense_unavailable")
        warnings.append(f"defense_unavailable: {failures['defense']}")
    elif "defense" in outcomes:
        approximation, defense_week, snaps = outcomes["defense"]
        stat_lines = ensure_defensive_lines(stat_lines, snaps, lookup)
        warnings.extend(approximation.warnings)
        if approximation.fallback_reason:
            quality_flags.append(f"defense_{approximation.fallback_reason}")
        data.update({"defense": DEFENSE_APPROX, "defense_week": defense_week.week})

    aggregates = aggregate_by_college(
        stat_lines,
        week,
        scoring_format,
        mode=mode,
        historical_averages=averages,
        include_kicker=include_kicker,
        defense_mode=DEFENSE_APPROX if defense_week is not None else DEFENSE_NONE,
        defense_week=defense_week,
        resolver=resolver,
    )
    data["results"] = aggregates_to_dicts(aggregates)
    data["unknown_count"] = count_resolution_gaps(stat_lines, resolver)
    return _envelope(data, quality_flags, warnings)


def scores_cache_key(season: int, week: int, scoring_format: str, mode: str, include_kicker: bool, defense_mode: str) -> str:
    return cache_key(
        "scores",
        season,
        week,
        normalize_scoring_format(scoring_format),
        mode,
        "k" if include_kicker else "nok",
        defense_mode,
    )


def store_school_scores(envelope: Dict[str, Any], cache: TieredCache, force: bool = False) -> Optional[PersistResult]:
    """Persist a complete scores payload under the key of the request that built it.

    Payloads carrying any quality flag (pending, stale, defense or averages
    fallback) are not stored: a stored key is never rewritten unless forced,
    so a degraded copy would shadow the complete one.
    """
    flags = list(envelope.get("quality_flags") or [])
    if flags:
        logger.info("not persisting degraded scores payload (%s)", ", ".join(flags))
        return None
    errors = validate_scores_envelope(envelope)
    if errors:
        raise InvalidPayloadError("scores", errors)
    data = envelope["data"]
    defense_mode = data.get("defense_requested") or data["defense"]
    key = scores_cache_key(data["season"], data["week"], data["format"], data["mode"], data["include_kicker"], defense_mode)
    return cache.persist(key, envelope, force=force)


def load_cached_scores(
    cache: TieredCache,
    season: int,
    week: int,
    scoring_format: str = "ppr",
    mode: str = MODE_WEEKLY,
    include_kicker: bool = True,
    defense_mode: str = DEFENSE_NONE,
) -> Optional[Dict[str, Any]]:
    value = cache.read(scores_cache_key(season, week, scoring_format, mode, include_kicker, defense_mode))
    return value if isinstance(value, dict) else None


def score_cfb_matchups(aggregates: Iterable[SchoolAggregate], cfb_games: Iterable[CollegiateGame], cfb_week: int) -> List[Dict[str, Any]]:
    matchups = score_matchups(aggregates, games_for_week(cfb_games, cfb_week))
    rows = []
    for matchup in matchups:
        row = asdict(matchup)
        row["kickoff"] = matchup.kickoff.isoformat() if matchup.kickoff else None
        rows.append(row)
    return rows


def school_series(
    school: str,
    season: int,
    start_week: int = 1,
    end_week: Optional[int] = None,
    scoring_format: str = "ppr",
    mode: str = MODE_WEEKLY,
    include_kicker: bool = True,
    defense_mode: str = DEFENSE_NONE,
    client: Any = None,
    resolver: Optional[CollegeResolver] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """One school's alumni total for every week in ``start_week..end_week``.

    ``end_week`` defaults to the last completed week (never before
    ``start_week``). A week in which the school fields nobody is reported as
    zero points with no performers.
    """
    name = str(school or "").strip()
    if not name:
        raise ValueError("school is required")
    if len(name) > 120:
        raise ValueError("school name is too long")
    start = int(start_week)
    end = int(end_week) if end_week is not None else max(last_completed_week(now).week, start)
    if start < 1 or end < start:
        raise ValueError(f"invalid week range: {start_week}..{end_week}")

    client = client or NflverseClient()
    resolver = resolver or default_resolver()
    resolved = resolver.resolve(name)
    target = (name if resolved == UNKNOWN_COLLEGE else resolved).lower()

    weeks = list(range(start, end + 1))
    envelopes: Dict[int, Dict[str, Any]] = {}
    with ThreadPoolExecutor(max_workers=min(4, len(weeks))) as pool:
        future_map = {
            pool.submit(
                compute_school_scores,
                season,
                week,
                scoring_format,
                mode,
                include_kicker,
                defense_mode,
                client,
                resolver,
            ): week
            for week in weeks
        }
        for future in as_completed(future_map):
            envelopes[future_map[future]] = future.result()

    series: List[Dict[str, Any]] = []
    quality_flags: List[str] = []
    warnings: List[str] = []
    for week in weeks:
        envelope = envelopes[week]
        row = next((item for item in envelope["data"]["results"] if item["school"].lower() == target), None)
        series.append(
            {
                "week": week,
                "total_points": row["total_points"] if row else 0.0,
                "performers": row["performers"] if row else [],
                "quality_flags": list(envelope["quality_flags"]),
            }
        )
        for flag in envelope["quality_flags"]:
            if flag not in quality_flags:
                quality_flags.append(flag)
        warnings.extend(f"week {week}: {warning}" for warning in envelope["warnings"])

    data = {
        "school": resolved if resolved != UNKNOWN_COLLEGE else name,
        "season": int(season),
        "start_week": start,
        "end_week": end,
        "format": normalize_scoring_format(scoring_format),
        "mode": mode,
        "include_kicker": bool(include_kicker),
        "defense": defense_mode,
        "series": series,
    }
    return _envelope(data, quality_flags, warnings)
