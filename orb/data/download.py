"""
Price sources for daily bars.

The engine only depends on the ``PriceSource`` interface; Yahoo Finance
and CSV files are the two shipped implementations.
"""
import logging
import warnings
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional, Union

import pandas as pd
import yfinance as yf

from .loader import DataLoader

# Suppress yfinance's pandas deprecation warnings
warnings.filterwarnings('ignore', message='.*Timestamp.utcnow.*')

logger = logging.getLogger(__name__)

OHLC_COLUMNS = ['Open', 'High', 'Low', 'Close']
OHLCV_COLUMNS = OHLC_COLUMNS + ['Volume']

DateLike = Union[str, date, datetime, pd.Timestamp]


def clean_bars(df: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize a raw OHLCV frame.

    Flattens yfinance multi-level columns, sorts by date, drops duplicate
    dates and removes rows with any null Open/High/Low/Close.

    Args:
        df: Raw frame with a date index

    Returns:
        Cleaned frame with OHLCV columns (Volume filled with 0 if absent)
    """
    if df is None or df.empty:
        return pd.DataFrame(columns=OHLCV_COLUMNS, index=pd.DatetimeIndex([]))

    df = df.copy()
    if isinstance(df.columns, pd.MultiIndex):
        df.columns = df.columns.get_level_values(0)

    missing = [c for c in OHLC_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Price data is missing columns: {missing}")
    if 'Volume' not in df.columns:
        df['Volume'] = 0.0

    if not isinstance(df.index, pd.DatetimeIndex):
        df.index = pd.to_datetime(df.index)
    if df.index.tz is not None:
        df.index = df.index.tz_localize(None)

    df = df[~df.index.duplicated(keep='last')]
    df = df.sort_index()

    before = len(df)
    df = df.dropna(subset=OHLC_COLUMNS)
    dropped = before - len(df)
    if dropped:
        logger.debug(f"Dropped {dropped} bars with missing OHLC values")

    return df[OHLCV_COLUMNS]


class PriceSource(ABC):
    """
    Base class for daily price sources.

    Implementations return an OHLCV DataFrame indexed by date, oldest first.
    Transport failures are raised as ordinary exceptions; the orchestrator
    owns the retry policy.
    """

    @abstractmethod
    def fetch_daily_bars(
        self,
        symbol: str,
        start: DateLike,
        end: Optional[DateLike] = None,
    ) -> pd.DataFrame:
        """
        Fetch daily bars for a symbol.

        Args:
            symbol: Ticker symbol
            start: First date (inclusive)
            end: Last date (inclusive). None means up to the latest bar.

        Returns:
            Cleaned OHLCV DataFrame
        """
        pass

    def fetch_next_day_ohlc(self, symbol: str, after: DateLike) -> Optional[pd.Series]:
        """
        Get the first bar strictly after a date.

        Args:
            symbol: Ticker symbol
            after: Forecast date

        Returns:
            Series with Open/High/Low/Close (name = bar date), or None if the
            next session is not available yet
        """
        after_ts = pd.Timestamp(after).normalize()
        bars = self.fetch_daily_bars(symbol, after_ts + timedelta(days=1), after_ts + timedelta(days=10))
        if bars.empty:
            return None
        bars = bars[bars.index.normalize() > after_ts]
        if bars.empty:
            return None
        return bars.iloc[0]


class YahooPriceSource(PriceSource):
    """Daily bars from Yahoo Finance via yfinance."""

    def fetch_daily_bars(
        self,
        symbol: str,
        start: DateLike,
        end: Optional[DateLike] = None,
    ) -> pd.DataFrame:
        start_str = pd.Timestamp(start).strftime('%Y-%m-%d')
        # yfinance treats `end` as exclusive
        end_str = None
        if end is not None:
            end_str = (pd.Timestamp(end) + timedelta(days=1)).strftime('%Y-%m-%d')

        logger.debug(f"Downloading {symbol} from Yahoo Finance ({start_str} to {end_str or 'latest'})")
        df = yf.download(
            symbol,
            start=start_str,
            end=end_str,
            interval='1d',
            auto_adjust=False,
            progress=False,
        )
        bars = clean_bars(df)
        logger.info(f"Downloaded {len(bars)} bars for {symbol}")
        return bars


class CsvPriceSource(PriceSource):
    """Daily bars from a local CSV file (symbol is ignored)."""

    def __init__(self, data_path: Union[str, Path]):
        self.loader = DataLoader(data_path)

    def fetch_daily_bars(
        self,
        symbol: str,
        start: DateLike,
        end: Optional[DateLike] = None,
    ) -> pd.DataFrame:
        df = self.loader.load(start_date=pd.Timestamp(start), end_date=None if end is None else pd.Timestamp(end))
        return clean_bars(df)
