from .colleges import CollegeResolver, default_resolver, load_resolver, normalize_college_text, resolve_college
from .defense import approximate_defense, approximate_defense_from_frame, build_defense_week, compute_dst_points
from .matchups import score_matchups
from .pipeline import (
    compute_school_scores,
    load_cached_scores,
    resolve_nfl_week,
    school_series,
    score_cfb_matchups,
    store_school_scores,
)
from .scoring import aggregate_by_college, compute_fantasy_points
from .settings import load_settings
from .storage import TieredCache
from .week_mapping import align_cfb_week, build_week_windows, map_cfb_week_to_week, map_kickoff_to_week
from .week_windows import estimate_week_for_kickoff, last_completed_week
from .alumni_types import (
    AppSettings,
    DefenseWeek,
    Performer,
    PlayerStatLine,
    SchoolAggregate,
    SourceRuntimeConfig,
    StorageConfig,
    WeekReference,
)

__all__ = [
    "AppSettings",
    "SourceRuntimeConfig",
    "StorageConfig",
    "WeekReference",
    "PlayerStatLine",
    "Performer",
    "SchoolAggregate",
    "DefenseWeek",
    "CollegeResolver",
    "TieredCache",
    "default_resolver",
    "load_resolver",
    "normalize_college_text",
    "resolve_college",
    "approximate_defense",
    "approximate_defense_from_frame",
    "build_defense_week",
    "compute_dst_points",
    "score_matchups",
    "compute_school_scores",
    "load_cached_scores",
    "resolve_nfl_week",
    "school_series",
    "score_cfb_matchups",
    "store_school_scores",
    "aggregate_by_college",
    "compute_fantasy_points",
    "load_settings",
    "align_cfb_week",
    "build_week_windows",
    "map_cfb_week_to_week",
    "map_kickoff_to_week",
    "estimate_week_for_kickoff",
    "last_completed_week",
]
