# campops_console/analytics/camp_performance.py
# CAMP PERFORMANCE METRICS (MTD / YTD / ITD)

"""
Period-over-period performance figures for completed camps.

Partner adjustment: for partners listed in settings.UNITS_ADJUSTED_PARTNERS,
partnerAdjustedCount is added to unitsSold. This only shapes the figures
computed here; stored records are never touched.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from config import settings
from data_processing.helpers import DataPipeline

logger = logging.getLogger(__name__)

FISCAL_YEAR_START_MONTH = 4
PERFORMANCE_COLUMNS = ['date', 'status', 'partnerName', 'unitsSold', 'revenue', 'partnerAdjustedCount']
COUNTED_STATUSES = {'completed', 'closed'}


class Timeframe(str, Enum):
    MTD = "mtd"
    YTD = "ytd"
    ITD = "itd"


@dataclass
class PerformanceMetrics:
    total_camps: int = 0
    units_sold: float = 0.0
    total_revenue: float = 0.0
    avg_units_per_camp: float = 0.0
    changes: Dict[str, Optional[float]] = field(default_factory=dict)


# --- Frame preparation ---
def prepare_camp_frame(records: Sequence[Dict[str, Any]]) -> pd.DataFrame:
    """Completed camps with a readable date, numeric figures and the partner adjustment applied."""
    if not records:
        return pd.DataFrame({
            'date': pd.Series(dtype='datetime64[ns]'), 'status': pd.Series(dtype=object),
            'partnerName': pd.Series(dtype=object), 'unitsSold': pd.Series(dtype=float),
            'revenue': pd.Series(dtype=float), 'partnerAdjustedCount': pd.Series(dtype=float),
        })

    df = (DataPipeline(pd.DataFrame(list(records)))
          .ensure_columns(PERFORMANCE_COLUMNS)
          .convert_date_columns(['date'])
          .standardize_missing_values({
              'unitsSold': 0.0, 'revenue': 0.0, 'partnerAdjustedCount': 0.0,
              'partnerName': '', 'status': '',
          })
          .to_df())

    undated = df['date'].isna()
    if undated.any():
        logger.warning(f"(performance) Excluding {int(undated.sum())} camp(s) with an unreadable date.")
    df = df[~undated & df['status'].str.lower().isin(COUNTED_STATUSES)].copy()

    adjusted = df['partnerName'].str.upper().isin([p.upper() for p in settings.UNITS_ADJUSTED_PARTNERS])
    df.loc[adjusted, 'unitsSold'] = df.loc[adjusted, 'unitsSold'] + df.loc[adjusted, 'partnerAdjustedCount']
    return df.reset_index(drop=True)


# --- Period keys ---
def month_year_key(ts: datetime) -> str:
    """'<0-based month>-<year>', e.g. '0-2024' for January 2024."""
    return f"{ts.month - 1}-{ts.year}"


def fiscal_year_label(ts: datetime) -> str:
    start = ts.year if ts.month >= FISCAL_YEAR_START_MONTH else ts.year - 1
    return f"FY{start}-{start + 1}"


def available_month_years(df: pd.DataFrame) -> List[str]:
    """Distinct month-year keys, most recent first."""
    if df.empty:
        return []
    months = df['date'].dt.to_period('M').drop_duplicates().sort_values(ascending=False)
    return [month_year_key(p.to_timestamp()) for p in months]


def available_fiscal_years(df: pd.DataFrame) -> List[str]:
    if df.empty:
        return []
    return sorted({fiscal_year_label(ts) for ts in df['date']}, reverse=True)


def _parse_month_year(key: str) -> Tuple[int, int]:
    month_str, year_str = key.split('-')
    return int(month_str), int(year_str)


def _parse_fiscal_year(label: str) -> int:
    text = label.upper().removeprefix('FY')
    return int(text.split('-')[0])


def _in_month(df: pd.DataFrame, month0: int, year: int) -> pd.DataFrame:
    return df[(df['date'].dt.month == month0 + 1) & (df['date'].dt.year == year)]


def _in_fiscal_year(df: pd.DataFrame, start_year: int) -> pd.DataFrame:
    start = pd.Timestamp(year=start_year, month=FISCAL_YEAR_START_MONTH, day=1)
    end = pd.Timestamp(year=start_year + 1, month=FISCAL_YEAR_START_MONTH, day=1)
    return df[(df['date'] >= start) & (df['date'] < end)]


def filter_period(df: pd.DataFrame, timeframe: Timeframe, month_year: Optional[str] = None,
                  fiscal_year: Optional[str] = None) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Returns (current, previous) frames for the selected period."""
    empty = df.iloc[0:0]
    if timeframe == Timeframe.MTD:
        if not month_year:
            return empty, empty
        month0, year = _parse_month_year(month_year)
        prev_month0, prev_year = (11, year - 1) if month0 == 0 else (month0 - 1, year)
        return _in_month(df, month0, year), _in_month(df, prev_month0, prev_year)
    if timeframe == Timeframe.YTD:
        if not fiscal_year:
            return empty, empty
        start_year = _parse_fiscal_year(fiscal_year)
        return _in_fiscal_year(df, start_year), _in_fiscal_year(df, start_year - 1)
    return df, empty


# --- Metrics ---
def _percent_change(current: float, previous: float) -> Optional[float]:
    if not previous:
        return None
    return round((current - previous) / previous * 100, 1)


def _totals(df: pd.DataFrame) -> Dict[str, float]:
    count = len(df)
    units = float(df['unitsSold'].sum()) if count else 0.0
    return {
        'totalCamps': count,
        'unitsSold': units,
        'totalRevenue': float(df['revenue'].sum()) if count else 0.0,
        'avgUnitsPerCamp': units / count if count else 0.0,
    }


def calculate_metrics(current: pd.DataFrame, previous: pd.DataFrame) -> PerformanceMetrics:
    now_totals, prev_totals = _totals(current), _totals(previous)
    return PerformanceMetrics(
        total_camps=int(now_totals['totalCamps']),
        units_sold=now_totals['unitsSold'],
        total_revenue=now_totals['totalRevenue'],
        avg_units_per_camp=now_totals['avgUnitsPerCamp'],
        changes={k: _percent_change(now_totals[k], prev_totals[k]) for k in now_totals},
    )


def camp_performance(records: Sequence[Dict[str, Any]], timeframe: Timeframe = Timeframe.ITD,
                     month_year: Optional[str] = None, fiscal_year: Optional[str] = None) -> PerformanceMetrics:
    df = prepare_camp_frame(records)
    current, previous = filter_period(df, Timeframe(timeframe), month_year, fiscal_year)
    return calculate_metrics(current, previous)
