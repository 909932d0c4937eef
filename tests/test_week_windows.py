from datetime import datetime, timedelta, timezone
from unittest import TestCase

from alumni_fantasy.week_windows import (
    clamp_week,
    estimate_week_for_kickoff,
    labor_day,
    last_completed_week,
    preseason_week_cap,
    week_one_cutoff,
    week_window,
)


def _utc(*parts) -> datetime:
    return datetime(*parts, tzinfo=timezone.utc)


class WeekWindowsTest(TestCase):
    def test_labor_day_and_first_cutoff(self):
        self.assertEqual(labor_day(2025), _utc(2025, 9, 1))
        self.assertEqual(labor_day(2024), _utc(2024, 9, 2))
        self.assertEqual(week_one_cutoff(2025), _utc(2025, 9, 9, 10))

    def test_clamp_week_bounds_garbage(self):
        self.assertEqual(clamp_week(0), 1)
        self.assertEqual(clamp_week(-4), 1)
        self.assertEqual(clamp_week(25), 18)
        self.assertEqual(clamp_week("7"), 7)
        self.assertEqual(clamp_week(None), 1)
        self.assertEqual(clamp_week(float("nan")), 1)

    def test_week_window_spans_seven_days(self):
        window = week_window(2025, 3)
        self.assertEqual(window.end, _utc(2025, 9, 23, 10))
        self.assertEqual(window.start, _utc(2025, 9, 16, 10))

    def test_consecutive_windows_are_contiguous(self):
        for season in (2019, 2024, 2025):
            for week in range(1, 18):
                self.assertEqual(week_window(season, week).end, week_window(season, week + 1).start, (season, week))

    def test_last_completed_week_never_decreases(self):
        now = _utc(2024, 6, 1)
        previous = last_completed_week(now)
        while now < _utc(2026, 3, 1):
            now += timedelta(hours=13)
            current = last_completed_week(now)
            self.assertGreaterEqual((current.season, current.week), (previous.season, previous.week), now)
            previous = current

    def test_preseason_cap_changes_in_2021(self):
        self.assertEqual(preseason_week_cap(2019), 4)
        self.assertEqual(preseason_week_cap(2021), 3)

    def test_late_august_kickoff_is_last_preseason_week(self):
        estimate = estimate_week_for_kickoff(2025, _utc(2025, 8, 30, 17))
        self.assertEqual(estimate.week, 3)
        self.assertEqual(estimate.raw_week, 0)
        self.assertEqual(estimate.end, week_window(2025, 1).start)

    def test_midsummer_kickoff_predates_preseason(self):
        estimate = estimate_week_for_kickoff(2019, _utc(2019, 7, 20, 18))
        self.assertEqual(estimate.week, 0)

    def test_regular_season_kickoff(self):
        estimate = estimate_week_for_kickoff(2024, _utc(2024, 9, 15, 17, 25))
        self.assertEqual(estimate.week, 2)
        self.assertEqual(estimate.raw_week, 2)

    def test_missing_kickoff_uses_fallback_week(self):
        estimate = estimate_week_for_kickoff(2024, None, fallback_week=5)
        self.assertEqual(estimate.week, 5)

    def test_last_completed_week_after_first_cutoff(self):
        reference = last_completed_week(_utc(2025, 9, 9, 12))
        self.assertEqual((reference.season, reference.week), (2025, 1))

        reference = last_completed_week(_utc(2025, 9, 23, 10))
        self.assertEqual((reference.season, reference.week), (2025, 3))

    def test_last_completed_week_before_first_cutoff_uses_prior_season(self):
        reference = last_completed_week(_utc(2025, 9, 9, 9))
        self.assertEqual((reference.season, reference.week), (2024, 18))

        reference = last_completed_week(_utc(2025, 3, 1))
        self.assertEqual((reference.season, reference.week), (2024, 18))
