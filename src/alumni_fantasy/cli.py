import argparse
import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, List, Optional

from .alumni_types import AppSettings, SchoolAggregate
from .colleges import default_resolver
from .defense import approximate_defense
from .errors import AlumniFantasyError
from .pipeline import (
    align_for_season,
    compute_school_scores,
    load_cached_scores,
    school_series,
    score_cfb_matchups,
    store_school_scores,
)
from .scoring import DEFENSE_APPROX, DEFENSE_NONE, MODE_AVG, MODE_WEEKLY, SCORING_FORMATS
from .settings import load_settings
from .sources.nflverse import NflverseClient
from .sources.schedules import CfbdScheduleSource, NflScheduleSource
from .storage.tiered import TieredCache
from .week_mapping import POLICY_PER_GAME, POLICY_PER_WEEK, detect_target_cfb_week, guess_cfb_season
from .week_windows import last_completed_week


logger = logging.getLogger(__name__)


def _parse_now(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))


def _cache(settings: AppSettings) -> TieredCache:
    return TieredCache.from_config(settings.storage)


def _cfb_source(settings: AppSettings, cache: TieredCache) -> CfbdScheduleSource:
    return CfbdScheduleSource(
        api_key=settings.cfbd_api_key,
        runtime=settings.runtime,
        cache=cache,
        resolver=default_resolver(),
    )


def _cmd_week(args: argparse.Namespace, settings: AppSettings) -> int:
    _emit(last_completed_week(_parse_now(args.now)).as_dict())
    return 0


def _resolve_cfb_target(args: argparse.Namespace, cfb_source: CfbdScheduleSource):
    now = _parse_now(args.now)
    season = args.cfb_season if args.cfb_season is not None else guess_cfb_season(now or datetime.now(timezone.utc))
    if args.cfb_week is None:
        result = cfb_source.fetch(season)
        games = list(result.value or []) if result.usable else []
        week = detect_target_cfb_week(games, now)
        if week is None:
            raise AlumniFantasyError(f"no collegiate games listed for {season}; pass --cfb-week")
        return season, week
    return season, args.cfb_week


def _cmd_align(args: argparse.Namespace, settings: AppSettings) -> int:
    client = NflverseClient(settings.runtime)
    cfb_source = _cfb_source(settings, _cache(settings))
    season, week = _resolve_cfb_target(args, cfb_source)
    reference, warnings = align_for_season(season, week, NflScheduleSource(client), cfb_source, policy=args.policy)
    _emit({"cfb_season": season, "cfb_week": week, "nfl": reference.as_dict(), "warnings": warnings})
    return 0


def _scores(args: argparse.Namespace, settings: AppSettings, season: int, week: int, cache: TieredCache):
    if not args.refresh:
        cached = load_cached_scores(cache, season, week, args.format, args.mode, not args.no_kicker, args.defense)
        if cached is not None:
            logger.debug("serving cached scores for %s week %s", season, week)
            return cached

    envelope = compute_school_scores(
        season,
        week,
        scoring_format=args.format,
        mode=args.mode,
        include_kicker=not args.no_kicker,
        defense_mode=args.defense,
        client=NflverseClient(settings.runtime),
    )
    if args.store:
        persisted = store_school_scores(envelope, cache, force=args.refresh)
        if persisted is not None:
            logger.info("scores persisted to %s (%s)", persisted.backend, persisted.key)
    return envelope


def _cmd_scores(args: argparse.Namespace, settings: AppSettings) -> int:
    if args.week is None:
        reference = last_completed_week(_parse_now(args.now))
        season = args.season if args.season is not None else reference.season
        week = reference.week
    else:
        season = args.season if args.season is not None else last_completed_week(_parse_now(args.now)).season
        week = args.week
    _emit(_scores(args, settings, season, week, _cache(settings)))
    return 0


def _cmd_school(args: argparse.Namespace, settings: AppSettings) -> int:
    now = _parse_now(args.now)
    season = args.season if args.season is not None else last_completed_week(now).season
    envelope = school_series(
        args.school,
        season,
        start_week=args.start_week,
        end_week=args.end_week,
        scoring_format=args.format,
        mode=args.mode,
        include_kicker=not args.no_kicker,
        defense_mode=args.defense,
        client=NflverseClient(settings.runtime),
        now=now,
    )
    _emit(envelope)
    return 0


def _cmd_defense(args: argparse.Namespace, settings: AppSettings) -> int:
    approximation = approximate_defense(args.season, week=args.week, client=NflverseClient(settings.runtime))
    _emit(asdict(approximation))
    return 0


def _cmd_matchups(args: argparse.Namespace, settings: AppSettings) -> int:
    client = NflverseClient(settings.runtime)
    cache = _cache(settings)
    cfb_source = _cfb_source(settings, cache)
    season, week = _resolve_cfb_target(args, cfb_source)
    reference, warnings = align_for_season(season, week, NflScheduleSource(client), cfb_source, policy=args.policy)

    envelope = _scores(args, settings, reference.season, reference.week, cache)
    aggregates = [
        SchoolAggregate(school=row["school"], total_points=float(row["total_points"]))
        for row in envelope["data"].get("results", [])
    ]
    slate = cfb_source.fetch(season)
    if not slate.usable:
        warnings.append(f"cfb_schedule_unavailable: {slate.reason}")
    _emit(
        {
            "cfb_season": season,
            "cfb_week": week,
            "nfl": reference.as_dict(),
            "matchups": score_cfb_matchups(aggregates, slate.value or [], week),
            "quality_flags": envelope["quality_flags"],
            "warnings": warnings + envelope["warnings"],
        }
    )
    return 0


def _add_lineup_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--format", default="ppr", choices=sorted(SCORING_FORMATS), help="Scoring format")
    parser.add_argument("--mode", default=MODE_WEEKLY, choices=[MODE_WEEKLY, MODE_AVG], help="Lineup selection mode")
    parser.add_argument("--defense", default=DEFENSE_NONE, choices=[DEFENSE_NONE, DEFENSE_APPROX], help="Defense slot mode")
    parser.add_argument("--no-kicker", action="store_true", help="Leave the kicker slot empty")


def _add_score_options(parser: argparse.ArgumentParser) -> None:
    _add_lineup_options(parser)
    parser.add_argument("--store", action="store_true", help="Persist computed scores to the tiered cache")
    parser.add_argument("--refresh", action="store_true", help="Ignore cached scores and overwrite on store")


def _add_cfb_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--cfb-season", type=int, default=None, help="Collegiate season (default: inferred)")
    parser.add_argument("--cfb-week", type=int, default=None, help="Collegiate week (default: next to kick off)")
    parser.add_argument("--policy", default=POLICY_PER_WEEK, choices=[POLICY_PER_WEEK, POLICY_PER_GAME])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="alumni-fantasy", description="Score college football programs by their alumni's pro fantasy output.")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--now", default=None, help="Override the current time (ISO 8601)")
    commands = parser.add_subparsers(dest="command", required=True)

    week = commands.add_parser("week", help="Last professional week with final stats")
    week.set_defaults(handler=_cmd_week)

    align = commands.add_parser("align", help="Professional week scored for a collegiate week")
    _add_cfb_options(align)
    align.set_defaults(handler=_cmd_align)

    scores = commands.add_parser("scores", help="Per-school alumni scores for a professional week")
    scores.add_argument("--season", type=int, default=None, help="Professional season")
    scores.add_argument("--week", type=int, default=None, help="Professional week (default: last completed)")
    _add_score_options(scores)
    scores.set_defaults(handler=_cmd_scores)

    school = commands.add_parser("school", help="One school's weekly alumni totals over a week range")
    school.add_argument("school", help="School name; mascots and common variants are accepted")
    school.add_argument("--season", type=int, default=None, help="Professional season")
    school.add_argument("--start-week", type=int, default=1)
    school.add_argument("--end-week", type=int, default=None, help="Last week (default: last completed)")
    _add_lineup_options(school)
    school.set_defaults(handler=_cmd_school)

    defense = commands.add_parser("defense", help="Approximated team defense scores")
    defense.add_argument("--season", type=int, required=True)
    defense.add_argument("--week", type=int, default=None)
    defense.set_defaults(handler=_cmd_defense)

    matchups = commands.add_parser("matchups", help="Head-to-head alumni totals for a collegiate slate")
    _add_cfb_options(matchups)
    _add_score_options(matchups)
    matchups.set_defaults(handler=_cmd_matchups)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings()
        return int(args.handler(args, settings))
    except (AlumniFantasyError, ValueError) as exc:
        logger.error("%s", exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
