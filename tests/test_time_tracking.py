"""Tests for daily usage tracking and the time-limit break."""

from datetime import datetime

from sproutling.models.navigation import Screen, ScreenKind
from sproutling.models.profile import Subject
from sproutling.tracker.session import USAGE_DATE_KEY, USAGE_SECONDS_KEY


def _enable_limit(tracker, minutes=5):
    tracker.set_time_limit(True, minutes)


class TestStartStop:
    def test_new_day_resets_stored_usage(self, tracker, usage_store):
        usage_store.set(USAGE_DATE_KEY, "2026-03-01")
        usage_store.set(USAGE_SECONDS_KEY, 1200)
        tracker.start_time_tracking()
        assert tracker.today_usage_seconds == 0
        assert usage_store.get(USAGE_DATE_KEY) == "2026-03-02"
        assert usage_store.get(USAGE_SECONDS_KEY) == 0

    def test_same_day_resumes(self, tracker, usage_store, ticker):
        usage_store.set(USAGE_DATE_KEY, "2026-03-02")
        usage_store.set(USAGE_SECONDS_KEY, 125)
        tracker.start_time_tracking()
        ticker.advance(5)
        assert tracker.today_usage_seconds == 130

    def test_stop_flushes_immediately(self, tracker, usage_store, ticker):
        tracker.start_time_tracking()
        ticker.advance(3)
        assert usage_store.get(USAGE_SECONDS_KEY) == 0
        tracker.stop_time_tracking()
        assert usage_store.get(USAGE_SECONDS_KEY) == 3
        assert not tracker.is_tracking

    def test_stop_then_start_round_trip(self, make_tracker, usage_store, ticker):
        first = make_tracker()
        first.setup()
        first.start_time_tracking()
        ticker.advance(42)
        first.stop_time_tracking()

        second = make_tracker()
        second.setup()
        second.start_time_tracking()
        assert second.today_usage_seconds == 42

    def test_start_twice_replaces_ticker(self, tracker, ticker):
        tracker.start_time_tracking()
        tracker.start_time_tracking()
        ticker.advance(1)
        assert ticker.starts == 2
        assert tracker.today_usage_seconds == 1
        assert tracker.is_tracking

    def test_stop_twice_is_safe(self, tracker):
        tracker.start_time_tracking()
        tracker.stop_time_tracking()
        tracker.stop_time_tracking()
        assert not tracker.is_tracking

    def test_stop_before_start_keeps_stored_usage(self, tracker, usage_store):
        usage_store.set(USAGE_DATE_KEY, "2026-03-02")
        usage_store.set(USAGE_SECONDS_KEY, 900)
        tracker.stop_time_tracking()
        assert usage_store.get(USAGE_DATE_KEY) == "2026-03-02"
        assert usage_store.get(USAGE_SECONDS_KEY) == 900
        tracker.start_time_tracking()
        assert tracker.today_usage_seconds == 900

    def test_ticker_interval_from_config(self, make_tracker, ticker):
        t = make_tracker(tick_interval_seconds=0.5)
        t.setup()
        t.start_time_tracking()
        assert ticker.interval == 0.5


class TestSharedTracking:
    def test_last_release_stops_and_flushes(self, tracker, usage_store, ticker):
        tracker.acquire_tracking()
        tracker.acquire_tracking()
        ticker.advance(4)
        tracker.release_tracking()
        assert tracker.is_tracking
        assert ticker.starts == 1
        tracker.release_tracking()
        assert not tracker.is_tracking
        assert usage_store.get(USAGE_SECONDS_KEY) == 4

    def test_release_without_acquire_is_ignored(self, tracker, usage_store):
        usage_store.set(USAGE_DATE_KEY, "2026-03-02")
        usage_store.set(USAGE_SECONDS_KEY, 300)
        tracker.release_tracking()
        assert not tracker.is_tracking
        assert usage_store.get(USAGE_SECONDS_KEY) == 300

    def test_acquire_restarts_after_explicit_stop(self, tracker):
        tracker.acquire_tracking()
        tracker.stop_time_tracking()
        tracker.acquire_tracking()
        assert tracker.is_tracking

class TestPeriodicFlush:
    def test_flush_every_ten_ticks(self, tracker, usage_store, ticker):
        tracker.start_time_tracking()
        ticker.advance(9)
        assert usage_store.get(USAGE_SECONDS_KEY) == 0
        ticker.advance(1)
        assert usage_store.get(USAGE_SECONDS_KEY) == 10

    def test_midnight_rollover_restarts_count(self, tracker, usage_store, ticker, clock):
        tracker.start_time_tracking()
        ticker.advance(20)
        clock.now = datetime(2026, 3, 3, 0, 0, 1)
        ticker.advance(1)
        assert tracker.today_usage_seconds == 1
        assert usage_store.get(USAGE_DATE_KEY) == "2026-03-03"
        assert usage_store.get(USAGE_SECONDS_KEY) == 1


class TestTimeLimit:
    def test_break_fires_once_on_rising_edge(self, tracker, usage_store, ticker):
        _enable_limit(tracker)
        usage_store.set(USAGE_DATE_KEY, "2026-03-02")
        usage_store.set(USAGE_SECONDS_KEY, 298)
        seen = []
        tracker.on_navigate(seen.append)
        tracker.start_lesson(Subject.MATH, 1)
        tracker.start_time_tracking()

        ticker.advance(1)
        assert not tracker.is_time_limit_reached
        ticker.advance(1)
        assert tracker.today_usage_seconds == 300
        assert tracker.is_time_limit_reached
        assert tracker.screen == Screen.time_for_break()

        tracker.go_home()
        ticker.advance(1)
        assert tracker.today_usage_seconds == 301
        assert tracker.screen == Screen.home()
        assert seen.count(Screen.time_for_break()) == 1

    def test_not_shown_on_settings_screen(self, tracker, usage_store, ticker):
        _enable_limit(tracker)
        usage_store.set(USAGE_DATE_KEY, "2026-03-02")
        usage_store.set(USAGE_SECONDS_KEY, 299)
        tracker.go_to_settings()
        tracker.start_time_tracking()
        ticker.advance(1)
        assert tracker.is_time_limit_reached
        assert tracker.screen.kind == ScreenKind.SETTINGS

    def test_already_over_limit_on_start(self, tracker, usage_store):
        _enable_limit(tracker)
        usage_store.set(USAGE_DATE_KEY, "2026-03-02")
        usage_store.set(USAGE_SECONDS_KEY, 900)
        tracker.start_time_tracking()
        assert tracker.screen == Screen.time_for_break()

    def test_disabled_limit_never_fires(self, tracker, usage_store, ticker):
        usage_store.set(USAGE_DATE_KEY, "2026-03-02")
        usage_store.set(USAGE_SECONDS_KEY, 3600)
        tracker.start_time_tracking()
        ticker.advance(5)
        assert not tracker.is_time_limit_reached
        assert tracker.screen == Screen.home()

    def test_enabling_mid_session_fires(self, tracker, usage_store, ticker):
        usage_store.set(USAGE_DATE_KEY, "2026-03-02")
        usage_store.set(USAGE_SECONDS_KEY, 600)
        tracker.start_time_tracking()
        tracker.go_home()
        _enable_limit(tracker)
        assert tracker.screen == Screen.time_for_break()

    def test_disabling_clears_reached(self, tracker, usage_store):
        _enable_limit(tracker)
        usage_store.set(USAGE_DATE_KEY, "2026-03-02")
        usage_store.set(USAGE_SECONDS_KEY, 900)
        tracker.start_time_tracking()
        tracker.set_time_limit(False)
        assert not tracker.is_time_limit_reached

    def test_reset_daily_usage(self, tracker, usage_store):
        _enable_limit(tracker)
        usage_store.set(USAGE_DATE_KEY, "2026-03-02")
        usage_store.set(USAGE_SECONDS_KEY, 900)
        tracker.start_time_tracking()
        tracker.reset_daily_usage()
        assert tracker.today_usage_seconds == 0
        assert not tracker.is_time_limit_reached
        assert usage_store.get(USAGE_SECONDS_KEY) == 0


class TestRemainingTime:
    def test_minutes(self, tracker, usage_store):
        usage_store.set(USAGE_DATE_KEY, "2026-03-02")
        usage_store.set(USAGE_SECONDS_KEY, 600)
        tracker.start_time_tracking()
        assert tracker.remaining_time_seconds == 1200
        assert tracker.remaining_time_formatted == "20m"

    def test_seconds(self, tracker, usage_store):
        _enable_limit(tracker)
        usage_store.set(USAGE_DATE_KEY, "2026-03-02")
        usage_store.set(USAGE_SECONDS_KEY, 255)
        tracker.start_time_tracking()
        assert tracker.remaining_time_formatted == "45s"

    def test_never_negative(self, tracker, usage_store):
        usage_store.set(USAGE_DATE_KEY, "2026-03-02")
        usage_store.set(USAGE_SECONDS_KEY, 5000)
        tracker.start_time_tracking()
        assert tracker.remaining_time_seconds == 0
        assert tracker.remaining_time_formatted == "0s"
