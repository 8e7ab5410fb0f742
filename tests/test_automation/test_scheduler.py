"""
Tests for the trading calendar and refresh timing.
"""
from datetime import date, datetime
from unittest.mock import patch

import pytest
import pytz

from orb.automation.scheduler import Scheduler


@pytest.fixture
def scheduler():
    return Scheduler()


def eastern(*args):
    return pytz.timezone("America/New_York").localize(datetime(*args))


class TestCalendar:
    @pytest.mark.parametrize("day", [
        date(2024, 1, 1),
        date(2024, 1, 15),   # MLK
        date(2024, 2, 19),   # Presidents' Day
        date(2024, 5, 27),   # Memorial Day
        date(2024, 6, 19),
        date(2024, 7, 4),
        date(2024, 9, 2),    # Labor Day
        date(2024, 11, 28),  # Thanksgiving
        date(2024, 12, 25),
        date(2021, 12, 24),  # Christmas on Saturday, observed Friday
        date(2022, 12, 26),  # Christmas on Sunday, observed Monday
    ])
    def test_holidays(self, scheduler, day):
        assert scheduler.is_market_holiday(day)
        assert not scheduler.is_trading_day(day)

    def test_regular_days(self, scheduler):
        assert scheduler.is_trading_day(date(2024, 7, 3))
        assert not scheduler.is_trading_day(date(2024, 7, 6))  # Saturday

    def test_next_trading_day_skips_holiday(self, scheduler):
        assert scheduler.get_next_trading_day(date(2024, 7, 3)) == date(2024, 7, 5)
        assert scheduler.get_next_trading_day(date(2024, 3, 1)) == date(2024, 3, 4)

    def test_previous_trading_day_skips_holiday(self, scheduler):
        assert scheduler.get_previous_trading_day(date(2024, 1, 16)) == date(2024, 1, 12)


class TestTiming:
    def test_refresh_time(self, scheduler):
        refresh = scheduler.get_data_refresh_time(date(2024, 3, 1))
        assert refresh == eastern(2024, 3, 1, 16, 30)

    def test_should_process_after_refresh(self, scheduler):
        with patch.object(scheduler, 'get_current_time', return_value=eastern(2024, 3, 1, 16, 45)):
            assert scheduler.should_process_now()
            scheduler.mark_processed()
            assert not scheduler.should_process_now()

    def test_not_before_refresh(self, scheduler):
        with patch.object(scheduler, 'get_current_time', return_value=eastern(2024, 3, 1, 16, 10)):
            assert not scheduler.should_process_now()

    def test_not_on_holiday(self, scheduler):
        with patch.object(scheduler, 'get_current_time', return_value=eastern(2024, 7, 4, 18, 0)):
            assert not scheduler.should_process_now()

    def test_next_session_closed(self, scheduler):
        # Forecast for Wed 3 Jul 2024 is graded against Fri 5 Jul
        with patch.object(scheduler, 'get_current_time', return_value=eastern(2024, 7, 5, 12, 0)):
            assert not scheduler.is_next_session_closed(date(2024, 7, 3))
        with patch.object(scheduler, 'get_current_time', return_value=eastern(2024, 7, 5, 17, 0)):
            assert scheduler.is_next_session_closed(date(2024, 7, 3))

    def test_seconds_until_next_refresh_rolls_to_next_session(self, scheduler):
        with patch.object(scheduler, 'get_current_time', return_value=eastern(2024, 3, 1, 17, 0)):
            scheduler.mark_processed()
            seconds = scheduler.seconds_until_next_refresh()
        # Friday 17:00 -> Monday 16:30
        assert seconds == int((eastern(2024, 3, 4, 16, 30) - eastern(2024, 3, 1, 17, 0)).total_seconds())
