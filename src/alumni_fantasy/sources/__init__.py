from .nflverse import NflverseClient
from .rosters import RosterCollegeLookup, attach_colleges, load_roster_lookup
from .schedules import CfbdScheduleSource, NflScheduleSource, games_for_week, parse_cfbd_games, parse_nfl_schedule

__all__ = [
    "NflverseClient",
    "RosterCollegeLookup",
    "attach_colleges",
    "load_roster_lookup",
    "CfbdScheduleSource",
    "NflScheduleSource",
    "games_for_week",
    "parse_cfbd_games",
    "parse_nfl_schedule",
]
