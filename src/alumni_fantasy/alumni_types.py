from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


FRESH = "fresh"
STALE = "stale"
UNAVAILABLE = "unavailable"

PRESEASON = "preseason"
REGULAR = "regular"


@dataclass(frozen=True)
class WeekWindow:
    season: int
    week: int
    start: datetime
    end: datetime


@dataclass(frozen=True)
class WeekReference:
    season: int
    week: int
    source: str = field(default="", compare=False)

    def as_dict(self) -> Dict[str, Any]:
        return {"season": self.season, "week": self.week, "source": self.source}


@dataclass(frozen=True)
class KickoffEstimate:
    season: int
    week: int
    raw_week: int
    start: datetime
    end: datetime


@dataclass
class ScheduleGame:
    season: int
    week: int
    kickoff: Optional[datetime]
    home_team: str = ""
    away_team: str = ""
    game_type: str = "REG"
    game_id: str = ""


@dataclass(frozen=True)
class ScheduleWindow:
    season: int
    week: int
    start: datetime
    end: datetime
    game_count: int
    phases: Tuple[str, ...]


@dataclass
class CollegiateGame:
    season: int
    week: int
    kickoff: Optional[datetime]
    home_raw: str = ""
    away_raw: str = ""
    home: Optional[str] = None
    away: Optional[str] = None
    season_type: str = "regular"
    game_id: str = ""


@dataclass(frozen=True)
class PlayerStatLine:
    player_id: str
    name: str
    position: str
    team: str
    points: float
    college_raw: Optional[str] = None
    alt_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DefenseRow:
    team: str
    week: int
    points_allowed: float
    sacks: int
    interceptions: int
    fumbles_recovered: int
    score: float


@dataclass
class DefenseApproximation:
    season: int
    week: Optional[int]
    requested_week: Optional[int]
    rows: List[DefenseRow]
    weeks_available: List[int]
    source: str = ""
    fallback_reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DefensiveSnap:
    player_id: str
    name: str
    position: str
    team: str
    snaps: float


@dataclass
class DefenseTeam:
    team: str
    dst_points: float
    total_snaps: float = 0.0
    players: List[DefensiveSnap] = field(default_factory=list)


@dataclass
class DefenseWeek:
    week: int
    teams: Dict[str, DefenseTeam] = field(default_factory=dict)


@dataclass
class Performer:
    name: str
    position: str
    team: Optional[str]
    points: float
    college: str
    player_id: Optional[str] = None
    week_points: Optional[float] = None
    contributors: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class SchoolAggregate:
    school: str
    total_points: float
    performers: List[Performer] = field(default_factory=list)


@dataclass
class MatchupResult:
    home: str
    away: str
    week: int
    kickoff: Optional[datetime]
    home_total: float
    away_total: float
    winner: Optional[str]


@dataclass
class PersistResult:
    key: str
    backend: str
    stored: bool
    skipped: bool = False
    url: Optional[str] = None


@dataclass
class SourceResult:
    status: str
    value: Any = None
    reason: str = ""
    source: str = ""
    age_seconds: Optional[float] = None

    @property
    def usable(self) -> bool:
        return self.status in (FRESH, STALE)

    @property
    def is_stale(self) -> bool:
        return self.status == STALE


@dataclass
class SourceRuntimeConfig:
    timeout_seconds: float = 15.0
    retries: int = 0
    backoff_seconds: float = 0.75
    cache_dir: Optional[str] = None
    cache_ttl_seconds: int = 3600
    user_agent: str = "alumni-fantasy/0.1"


@dataclass
class StorageConfig:
    kv_url: Optional[str] = None
    kv_token: Optional[str] = None
    blob_token: Optional[str] = None
    blob_base_url: str = "https://blob.vercel-storage.com"
    timeout_seconds: float = 10.0
    default_ttl_seconds: int = 60 * 60 * 24 * 30


@dataclass
class AppSettings:
    runtime: SourceRuntimeConfig = field(default_factory=SourceRuntimeConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    cfbd_api_key: Optional[str] = None
