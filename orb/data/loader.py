"""
CSV data loader for daily OHLCV history.

Loads bars exported from Yahoo Finance (or any CSV with a date index and
Open/High/Low/Close/Volume columns) with optional date filtering.
"""
import pandas as pd
from pathlib import Path
from typing import Optional, Union
from datetime import datetime


class DataLoader:
    """
    Loads data from an OHLCV CSV file.

    Supports date range filtering and single-column extraction.
    """

    def __init__(self, data_path: Union[str, Path]):
        """
        Initialize the data loader.

        Args:
            data_path: Path to the CSV file containing the data
        """
        self.data_path = Path(data_path)
        if not self.data_path.exists():
            raise FileNotFoundError(f"Data file not found: {self.data_path}")

    def load(
        self,
        start_date: Optional[Union[str, datetime, pd.Timestamp]] = None,
        end_date: Optional[Union[str, datetime, pd.Timestamp]] = None,
        column: Optional[str] = None
    ) -> Union[pd.DataFrame, pd.Series]:
        """
        Load data from CSV file with optional filtering.

        Args:
            start_date: Start date for filtering (inclusive). If None, no start filter.
            end_date: End date for filtering (inclusive). If None, no end filter.
            column: If specified, return Series for this column instead of DataFrame.

        Returns:
            DataFrame or Series with datetime index and OHLCV columns (or specified column)
        """
        df = pd.read_csv(self.data_path, index_col=0, parse_dates=True)

        if not isinstance(df.index, pd.DatetimeIndex):
            df.index = pd.to_datetime(df.index)

        df = df.sort_index()
        df = df[~df.index.duplicated(keep='last')]

        if start_date is not None:
            df = df[df.index >= pd.to_datetime(start_date)]

        if end_date is not None:
            df = df[df.index <= pd.to_datetime(end_date)]

        if column is not None:
            if column not in df.columns:
                raise ValueError(f"Column '{column}' not found. Available: {list(df.columns)}")
            return df[column]

        return df
