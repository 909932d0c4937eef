from datetime import datetime, timedelta, timezone
from unittest import TestCase

from alumni_fantasy.alumni_types import CollegiateGame, ScheduleGame, ScheduleWindow, WeekReference
from alumni_fantasy.week_mapping import (
    CFB_WEEK_OFFSETS,
    POLICY_PER_GAME,
    align_cfb_week,
    build_week_windows,
    detect_target_cfb_week,
    dominant_week,
    guess_cfb_season,
    map_cfb_games_to_weeks,
    map_cfb_week_to_week,
    map_kickoff_to_week,
    normalize_game_type,
    tuesday_cutoff,
)


def _utc(*parts) -> datetime:
    return datetime(*parts, tzinfo=timezone.utc)


def _window(week: int, end: datetime, phase: str) -> ScheduleWindow:
    return ScheduleWindow(season=2024, week=week, start=end - timedelta(days=7), end=end, game_count=1, phases=(phase,))


def _preseason_calendar():
    return [
        _window(1, _utc(2024, 8, 11), "preseason"),
        _window(2, _utc(2024, 8, 18), "preseason"),
        _window(3, _utc(2024, 8, 25), "preseason"),
        _window(4, _utc(2024, 9, 10, 1, 15), "regular"),
        _window(5, _utc(2024, 9, 17, 1, 15), "regular"),
    ]


def _cfb_game(week: int, kickoff: datetime) -> CollegiateGame:
    return CollegiateGame(season=2024, week=week, kickoff=kickoff, home="Georgia", away="Clemson")


class WeekMappingTest(TestCase):
    def test_normalize_game_type(self):
        self.assertEqual(normalize_game_type("PRE"), "preseason")
        self.assertEqual(normalize_game_type("PRE3"), "preseason")
        self.assertEqual(normalize_game_type("hof"), "preseason")
        self.assertEqual(normalize_game_type("REG"), "regular")
        self.assertEqual(normalize_game_type(""), "regular")
        self.assertEqual(normalize_game_type("SB"), "regular")

    def test_tuesday_cutoff_follows_monday_night(self):
        self.assertEqual(tuesday_cutoff(_utc(2024, 9, 10, 0, 15)), _utc(2024, 9, 10, 10))
        self.assertEqual(tuesday_cutoff(_utc(2024, 9, 6, 0, 20)), _utc(2024, 9, 10, 10))
        self.assertEqual(tuesday_cutoff(_utc(2024, 9, 10, 11)), _utc(2024, 9, 17, 10))

    def test_build_week_windows_groups_by_week(self):
        games = [
            ScheduleGame(2024, 1, _utc(2024, 9, 6, 0, 20), "KC", "BAL"),
            ScheduleGame(2024, 1, _utc(2024, 9, 10, 0, 15), "SF", "NYJ"),
            ScheduleGame(2024, 2, _utc(2024, 9, 15, 17), "DAL", "NO"),
            ScheduleGame(2024, 2, None, "TBD", "TBD"),
            ScheduleGame(2024, 0, _utc(2024, 8, 25, 17), "PHI", "MIN", game_type="PRE"),
        ]
        windows = build_week_windows(games)

        self.assertEqual([window.week for window in windows], [0, 1, 2])
        self.assertEqual(windows[1].end, _utc(2024, 9, 10, 10))
        self.assertEqual(windows[1].start, _utc(2024, 9, 3, 10))
        self.assertEqual(windows[1].game_count, 2)
        self.assertEqual(windows[2].game_count, 1)
        self.assertEqual(windows[0].phases, ("preseason",))

    def test_kickoff_before_first_window_maps_to_prior_season_finale(self):
        windows = [
            _window(1, _utc(2024, 9, 10, 1, 15), "regular"),
            _window(2, _utc(2024, 9, 17, 1, 15), "regular"),
        ]
        self.assertEqual(map_kickoff_to_week(_utc(2024, 9, 7, 18), windows, 2023), WeekReference(2023, 18))
        self.assertEqual(map_kickoff_to_week(_utc(2024, 9, 12, 18), windows, 2023), WeekReference(2024, 1))
        self.assertEqual(map_kickoff_to_week(_utc(2024, 9, 21, 18), windows, 2023), WeekReference(2024, 2))

    def test_kickoff_without_windows_uses_fallback_week_one(self):
        self.assertEqual(map_kickoff_to_week(_utc(2024, 9, 7), [], 2023), WeekReference(2023, 1))
        self.assertEqual(map_kickoff_to_week(None, _preseason_calendar(), 2023), WeekReference(2023, 1))

    def test_cfb_weeks_follow_schedule_classification(self):
        windows = _preseason_calendar()
        games = {
            1: [_cfb_game(1, _utc(2024, 8, 24, 20)), _cfb_game(1, _utc(2024, 8, 25, 2))],
            2: [_cfb_game(2, _utc(2024, 8, 31, 18))],
            3: [_cfb_game(3, _utc(2024, 9, 7, 18))],
        }
        expected = {1: 3, 2: 4, 3: 5}
        for cfb_week, nfl_week in expected.items():
            self.assertEqual(map_cfb_week_to_week(games[cfb_week], windows, cfb_week, 2023), WeekReference(2024, nfl_week))
            self.assertEqual(map_cfb_week_to_week([], windows, cfb_week, 2023), WeekReference(2024, nfl_week))

    def test_late_cfb_week_clamps_to_last_regular_window(self):
        reference = map_cfb_week_to_week([], _preseason_calendar(), 12, 2023)
        self.assertEqual(reference, WeekReference(2024, 5))

    def test_empty_windows_fall_back(self):
        reference = map_cfb_week_to_week([_cfb_game(3, _utc(2024, 9, 7, 18))], [], 3, 2023)
        self.assertEqual(reference, WeekReference(2023, 1))

    def test_unclassified_windows_use_latest_kickoff(self):
        windows = [
            ScheduleWindow(2024, 1, _utc(2024, 9, 3, 10), _utc(2024, 9, 10, 10), 16, ()),
            ScheduleWindow(2024, 2, _utc(2024, 9, 10, 10), _utc(2024, 9, 17, 10), 16, ()),
        ]
        games = [_cfb_game(4, _utc(2024, 9, 14, 16)), _cfb_game(4, _utc(2024, 9, 21, 2))]
        reference = map_cfb_week_to_week(games, windows, 4, 2023)
        self.assertEqual(reference, WeekReference(2024, 2))
        self.assertEqual(reference.source, "latest_kickoff")

    def test_offset_table_is_last_resort(self):
        windows = [ScheduleWindow(2024, 1, _utc(2024, 9, 3, 10), _utc(2024, 9, 10, 10), 16, ())]
        self.assertEqual(map_cfb_week_to_week([], windows, 5, 2023), WeekReference(2024, CFB_WEEK_OFFSETS[5]))
        self.assertEqual(CFB_WEEK_OFFSETS[5], 7)
        self.assertEqual(CFB_WEEK_OFFSETS[16], 18)
        self.assertEqual(map_cfb_week_to_week([], windows, 5, 2023, offsets={5: 9}), WeekReference(2024, 9))

    def test_per_game_policy_takes_dominant_week(self):
        windows = [
            _window(1, _utc(2024, 9, 10, 10), "regular"),
            _window(2, _utc(2024, 9, 17, 10), "regular"),
        ]
        games = [
            _cfb_game(4, _utc(2024, 9, 12, 23)),
            _cfb_game(4, _utc(2024, 9, 14, 16)),
            _cfb_game(4, _utc(2024, 9, 17, 23)),
        ]
        assignments = map_cfb_games_to_weeks(games, windows, 2023)
        self.assertEqual([reference.week for _, reference in assignments], [1, 1, 2])
        self.assertEqual(align_cfb_week(games, windows, 4, 2023, policy=POLICY_PER_GAME), WeekReference(2024, 1))

    def test_dominant_week_tie_prefers_later_week(self):
        assignments = [
            (None, WeekReference(2024, 1)),
            (None, WeekReference(2024, 2)),
            (None, None),
        ]
        self.assertEqual(dominant_week(assignments), WeekReference(2024, 2))
        self.assertIsNone(dominant_week([(None, None)]))

    def test_per_game_policy_without_kickoffs_falls_back(self):
        games = [CollegiateGame(season=2024, week=2, kickoff=None)]
        reference = align_cfb_week(games, _preseason_calendar(), 2, 2023, policy=POLICY_PER_GAME)
        self.assertEqual(reference, WeekReference(2024, 4))

    def test_unknown_policy_raises(self):
        with self.assertRaises(ValueError):
            align_cfb_week([], _preseason_calendar(), 2, 2023, policy="nearest")

    def test_guess_cfb_season(self):
        self.assertEqual(guess_cfb_season(_utc(2024, 10, 1)), 2024)
        self.assertEqual(guess_cfb_season(_utc(2025, 1, 5)), 2024)

    def test_detect_target_cfb_week(self):
        games = [
            _cfb_game(1, _utc(2024, 8, 24, 20)),
            _cfb_game(2, _utc(2024, 8, 31, 18)),
            _cfb_game(2, _utc(2024, 8, 30, 23)),
            _cfb_game(3, _utc(2024, 9, 7, 18)),
        ]
        self.assertEqual(detect_target_cfb_week(games, _utc(2024, 8, 20)), 1)
        self.assertEqual(detect_target_cfb_week(games, _utc(2024, 8, 27)), 2)
        self.assertEqual(detect_target_cfb_week(games, _utc(2024, 8, 31)), 3)
        self.assertEqual(detect_target_cfb_week(games, _utc(2024, 9, 30)), 3)
        self.assertIsNone(detect_target_cfb_week([], _utc(2024, 9, 30)))
