# campops_console/data_processing/helpers.py
# TOLERANT COERCION HELPERS & FLUENT FRAME PIPELINE

"""
Utility functions shared by the lifecycle, query and analytics layers.

Records arrive from the store as loosely shaped dicts: numbers stored as
strings, dates in several formats, nested objects that may be missing. The
helpers here coerce such values without raising; a malformed value comes
back as "missing".
"""
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Type
from zoneinfo import ZoneInfo

import numpy as np
import pandas as pd

from config import settings

logger = logging.getLogger(__name__)

# --- Standalone Utility Functions ---

NA_REGEX_PATTERN = re.compile(
    r'(?i)^\s*(nan|none|n/a|#n/a|np\.nan|nat|<na>|null|nil|na|undefined|unknown|-|)\s*$'
)

_MISSING = object()

# Range a pandas datetime64[ns] column can hold.
_MIN_TIMESTAMP = datetime(1677, 9, 22)
_MAX_TIMESTAMP = datetime(2262, 4, 11)


def is_blank(value: Any) -> bool:
    """True for None, NaN/NaT and empty or whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict, tuple, set)):
        return False
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def get_path(record: Any, path: str, default: Any = None) -> Any:
    """
    Dereferences a dot-path ('metadata.createdAt') parent-then-child.

    A missing or non-dict parent yields `default`.
    """
    current = record
    for part in path.split('.'):
        if not isinstance(current, dict):
            return default
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return default
    return current


def convert_to_numeric(data_input: Any, default_value: Any = np.nan, target_type: Optional[Type] = None) -> Any:
    """
    Robustly converts various inputs to a numeric pandas Series or scalar,
    handling common "Not Available" string representations.
    """
    is_series = isinstance(data_input, pd.Series)
    series = data_input if is_series else pd.Series([data_input], dtype=object)

    if pd.api.types.is_object_dtype(series.dtype):
        series = series.replace(NA_REGEX_PATTERN, np.nan, regex=True)

    numeric_series = pd.to_numeric(series, errors='coerce')
    if not pd.isna(default_value):
        numeric_series = numeric_series.fillna(default_value)

    if target_type is int and pd.api.types.is_numeric_dtype(numeric_series.dtype):
        numeric_series = numeric_series.astype(pd.Int64Dtype() if numeric_series.isnull().any() else int)
    elif target_type is float:
        numeric_series = numeric_series.astype(float)

    return numeric_series if is_series else (numeric_series.iloc[0] if not numeric_series.empty else default_value)


def coerce_number(value: Any) -> Optional[float]:
    """Scalar counterpart of convert_to_numeric: a float, or None when unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, np.number)):
        return None if pd.isna(value) else float(value)
    if isinstance(value, str):
        text = value.strip().replace(',', '')
        if NA_REGEX_PATTERN.match(text):
            return None
        try:
            number = float(text)
        except ValueError:
            logger.debug(f"Could not coerce '{value}' to a number.")
            return None
        return None if np.isnan(number) else number
    return None


def _to_local_naive(ts: datetime) -> Optional[datetime]:
    """Local naive datetime, or None when it falls outside the storable range."""
    if ts.tzinfo is not None:
        try:
            ts = ts.astimezone(ZoneInfo(settings.LOCAL_TIMEZONE)).replace(tzinfo=None)
        except (OverflowError, ValueError) as e:
            logger.debug(f"Timestamp {ts!r} cannot be shifted to local time: {e}")
            return None
    if not _MIN_TIMESTAMP <= ts <= _MAX_TIMESTAMP:
        logger.debug(f"Timestamp {ts!r} is out of range; treated as missing.")
        return None
    return ts


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parses a stored timestamp into a naive datetime in the local timezone.

    Accepts ISO strings (with or without 'Z'/offset), display strings such as
    'Jan 5, 2024', date/datetime objects and epoch milliseconds. Anything
    unparseable returns None.
    """
    if value is None or value is pd.NaT or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _to_local_naive(value)
    if isinstance(value, date):
        return _to_local_naive(datetime(value.year, value.month, value.day))
    if isinstance(value, (int, float, np.number)):
        if pd.isna(value):
            return None
        try:
            return _to_local_naive(pd.to_datetime(value, unit='ms', utc=True).to_pydatetime())
        except (ValueError, OverflowError) as e:
            logger.debug(f"Epoch value {value} out of range: {e}")
            return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if NA_REGEX_PATTERN.match(text):
        return None
    iso_text = text[:-1] + '+00:00' if text.endswith(('Z', 'z')) else text
    try:
        return _to_local_naive(datetime.fromisoformat(iso_text))
    except (ValueError, OverflowError):
        pass
    try:
        parsed = pd.to_datetime(text, errors='coerce')
    except (ValueError, TypeError, OverflowError):
        parsed = pd.NaT
    if pd.isna(parsed):
        logger.debug(f"Unparseable timestamp '{value}' treated as missing.")
        return None
    return _to_local_naive(parsed.to_pydatetime())


def calendar_day(value: Any) -> Optional[date]:
    """The local calendar date of a stored timestamp, or None."""
    parsed = parse_datetime(value)
    return parsed.date() if parsed is not None else None


def to_local_datetimes(values: Sequence[Any]) -> pd.Series:
    """Vector form of parse_datetime; unparseable entries become NaT."""
    parsed = [parse_datetime(v) for v in values]
    return pd.Series(pd.to_datetime(parsed, errors='coerce'), dtype='datetime64[ns]')


def to_iso(ts: datetime) -> str:
    """Serializes a transition timestamp the way it is written to the store."""
    return ts.isoformat()


# --- Fluent Frame Pipeline ---
class DataPipeline:
    """
    A fluent interface for applying a sequence of data processing operations.

    Usage:
        processed_df = (DataPipeline(raw_df)
                        .convert_date_columns(['date'])
                        .standardize_missing_values({'unitsSold': 0, 'partnerName': ''})
                        .to_df())
    """
    def __init__(self, df: pd.DataFrame):
        if not isinstance(df, pd.DataFrame):
            raise TypeError("DataPipeline must be initialized with a pandas DataFrame.")
        self.df = df.copy()

    def to_df(self) -> pd.DataFrame:
        """Returns the processed DataFrame."""
        return self.df

    def ensure_columns(self, columns: List[str]) -> 'DataPipeline':
        """Adds any missing columns as all-NaN so downstream code can rely on them."""
        for col in columns:
            if col not in self.df.columns:
                self.df[col] = np.nan
        return self

    def standardize_missing_values(self, default_values: Dict[str, Any]) -> 'DataPipeline':
        """
        Standardizes various "Not Available" formats to np.nan and then fills
        with provided defaults, inferring type from the default value.
        """
        if not default_values:
            return self

        for col, default in default_values.items():
            if col in self.df.columns:
                if isinstance(default, (int, float, np.number)):
                    target_type = int if isinstance(default, int) else float
                    self.df[col] = convert_to_numeric(self.df[col], default_value=default, target_type=target_type)
                else:
                    series = self.df[col].astype(object).replace(NA_REGEX_PATTERN, np.nan, regex=True)
                    self.df[col] = series.fillna(str(default)).astype(str).str.strip()
        return self

    def convert_date_columns(self, date_columns: List[str]) -> 'DataPipeline':
        """Converts specified columns to local naive datetimes, coercing errors to NaT."""
        for col in date_columns:
            if col in self.df.columns:
                self.df[col] = to_local_datetimes(self.df[col].tolist()).values
        return self
