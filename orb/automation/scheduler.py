"""
Trading calendar and market-close timing.

Decides when the daily batch should run (after the close plus a buffer)
and which session follows a forecast date for grading.
"""
import logging
import time
from datetime import date as date_cls, datetime, timedelta, time as dt_time
from typing import Optional, Union

import pytz


logger = logging.getLogger(__name__)

DateLike = Union[date_cls, datetime]


def _nth_weekday(year: int, month: int, weekday: int, n: int) -> date_cls:
    """n-th given weekday of a month (n=-1 for the last one)."""
    if n > 0:
        first = date_cls(year, month, 1)
        offset = (weekday - first.weekday()) % 7
        return first + timedelta(days=offset + 7 * (n - 1))
    next_month = date_cls(year + (month // 12), month % 12 + 1, 1)
    last = next_month - timedelta(days=1)
    return last - timedelta(days=(last.weekday() - weekday) % 7)


def _observed(day: date_cls) -> date_cls:
    """Weekend holidays are observed on the adjacent weekday."""
    if day.weekday() == 5:
        return day - timedelta(days=1)
    if day.weekday() == 6:
        return day + timedelta(days=1)
    return day


class Scheduler:
    """
    Manages timing for the daily batch.

    Responsibilities:
    - Determine when to run (after market close + buffer)
    - Answer trading-day questions for the grader
    - Sleep until the next session's refresh time
    """

    def __init__(
        self,
        market_close_hour: int = 16,  # 4 PM ET
        market_close_minute: int = 0,
        wait_after_close_minutes: int = 30,
        timezone: str = "America/New_York"
    ):
        """
        Initialize scheduler.

        Args:
            market_close_hour: Hour when market closes (24h format, default: 16 = 4 PM)
            market_close_minute: Minute when market closes (default: 0)
            wait_after_close_minutes: Minutes to wait after close for data to settle
            timezone: Timezone for market hours (default: America/New_York)
        """
        self.market_close_hour = market_close_hour
        self.market_close_minute = market_close_minute
        self.wait_after_close_minutes = wait_after_close_minutes
        self.tz = pytz.timezone(timezone)

        # Track last processed date to avoid duplicate processing
        self.last_processed_date: Optional[datetime] = None

    def get_current_time(self) -> datetime:
        """Get current time in market timezone."""
        return datetime.now(self.tz)

    def get_market_close_time(self, date: Optional[DateLike] = None) -> datetime:
        """Market close for a date, localized to the market timezone."""
        if date is None:
            date = self.get_current_time()
        day = date.date() if isinstance(date, datetime) else date
        return self.tz.localize(
            datetime.combine(day, dt_time(self.market_close_hour, self.market_close_minute))
        )

    def get_data_refresh_time(self, date: Optional[DateLike] = None) -> datetime:
        """Time when the day's bar should be final (close + buffer)."""
        return self.get_market_close_time(date) + timedelta(minutes=self.wait_after_close_minutes)

    def should_process_now(self) -> bool:
        """
        Check if the batch should run now.

        Returns:
            True on a trading day past the refresh time that hasn't been processed yet
        """
        now = self.get_current_time()
        if not self.is_trading_day(now):
            return False
        if now < self.get_data_refresh_time(now):
            return False

        if self.last_processed_date is not None and self.last_processed_date.date() == now.date():
            logger.debug(f"Already processed today ({now.date()})")
            return False

        return True

    def is_weekend(self, date: Optional[DateLike] = None) -> bool:
        if date is None:
            date = self.get_current_time()
        return date.weekday() in [5, 6]  # 5=Saturday, 6=Sunday

    def is_market_holiday(self, date: Optional[DateLike] = None) -> bool:
        """
        Check if date is a US market holiday.

        Covers the fixed-date and n-th-weekday NYSE holidays. Good Friday is
        not modelled; on that day the price source simply returns no new bar.
        """
        if date is None:
            date = self.get_current_time()
        day = date.date() if isinstance(date, datetime) else date
        year = day.year

        holidays = {
            _observed(date_cls(year, 1, 1)),  # New Year's Day
            _nth_weekday(year, 1, 0, 3),  # Martin Luther King Jr. Day
            _nth_weekday(year, 2, 0, 3),  # Presidents' Day
            _nth_weekday(year, 5, 0, -1),  # Memorial Day
            _observed(date_cls(year, 6, 19)),  # Juneteenth
            _observed(date_cls(year, 7, 4)),  # Independence Day
            _nth_weekday(year, 9, 0, 1),  # Labor Day
            _nth_weekday(year, 11, 3, 4),  # Thanksgiving
            _observed(date_cls(year, 12, 25)),  # Christmas
        }
        return day in holidays

    def is_trading_day(self, date: Optional[DateLike] = None) -> bool:
        """True if date is neither a weekend nor a holiday."""
        if date is None:
            date = self.get_current_time()
        return not self.is_weekend(date) and not self.is_market_holiday(date)

    def get_next_trading_day(self, from_date: Optional[DateLike] = None) -> DateLike:
        """Get the next trading day after from_date."""
        if from_date is None:
            from_date = self.get_current_time()

        next_day = from_date + timedelta(days=1)
        while not self.is_trading_day(next_day):
            next_day = next_day + timedelta(days=1)
        return next_day

    def get_previous_trading_day(self, from_date: Optional[DateLike] = None) -> DateLike:
        """Get the last trading day before from_date."""
        if from_date is None:
            from_date = self.get_current_time()

        prev_day = from_date - timedelta(days=1)
        while not self.is_trading_day(prev_day):
            prev_day = prev_day - timedelta(days=1)
        return prev_day

    def is_next_session_closed(self, forecast_date: DateLike) -> bool:
        """
        Whether the session after a forecast date has closed and settled.

        Used by the grader to avoid fetching a bar that is still forming.
        """
        next_session = self.get_next_trading_day(forecast_date)
        return self.get_current_time() >= self.get_data_refresh_time(next_session)

    def seconds_until_next_refresh(self) -> int:
        """Seconds until the next refresh time (minimum 60, 0 if due now)."""
        now = self.get_current_time()
        if self.should_process_now():
            return 0

        refresh_time = self.get_data_refresh_time(now)
        if now >= refresh_time or not self.is_trading_day(now):
            refresh_time = self.get_data_refresh_time(self.get_next_trading_day(now))

        seconds = int((refresh_time - now).total_seconds())
        return max(seconds, 60)

    def wait_for_market_close(self):
        """
        Block until it's time to run (after market close + buffer).

        Sleeps in chunks of at most an hour so shutdown signals are honoured.
        """
        while not self.should_process_now():
            seconds = self.seconds_until_next_refresh()
            logger.info(
                f"Waiting for market close + buffer "
                f"({seconds // 3600}h {(seconds % 3600) // 60}m)"
            )
            time.sleep(min(seconds, 3600))

    def mark_processed(self, date: Optional[datetime] = None):
        """Mark a date as processed to avoid duplicate processing."""
        if date is None:
            date = self.get_current_time()
        self.last_processed_date = date
        logger.info(f"Marked {date.date()} as processed")
