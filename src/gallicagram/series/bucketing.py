from __future__ import annotations

import calendar
import logging
from collections.abc import Iterable

import numpy as np
import pandas as pd

from gallicagram.models import RAW_COLUMNS, Resolution

LOGGER = logging.getLogger(__name__)

# Periods rather than Timestamps: Livres Gallica starts in 1600, before the
# nanosecond Timestamp lower bound.
FREQ_MAP = {
    Resolution.DAY: "D",
    Resolution.MONTH: "M",
    Resolution.YEAR: "Y",
    Resolution.DECADE: "Y",
}

DATE_FORMATS = {
    Resolution.DAY: "%Y-%m-%d",
    Resolution.MONTH: "%Y-%m",
    Resolution.YEAR: "%Y",
    Resolution.DECADE: "%Y",
}


def decade_of(year: int) -> int:
    return (int(year) // 10) * 10


def bucket_key(
    year: int,
    month: int | None,
    day: int | None,
    resolution: Resolution,
) -> pd.Period:
    """Canonical bucket for a (year, month, day) triple; missing parts default to 1."""
    freq = FREQ_MAP[resolution]
    if resolution is Resolution.DECADE:
        return pd.Period(year=decade_of(year), freq=freq)
    if resolution is Resolution.YEAR:
        return pd.Period(year=int(year), freq=freq)
    month_value = int(month) if month and month > 0 else 1
    if month_value > 12:
        raise ValueError(f"Invalid month: {month}")
    if resolution is Resolution.MONTH:
        return pd.Period(year=int(year), month=month_value, freq=freq)
    day_value = int(day) if day and day > 0 else 1
    if day_value > calendar.monthrange(int(year), month_value)[1]:
        raise ValueError(f"Invalid day: {year}-{month_value}-{day}")
    return pd.Period(year=int(year), month=month_value, day=day_value, freq=freq)


def build_time_axis(resolution: Resolution, start_year: int, end_year: int) -> pd.PeriodIndex:
    """One bucket per period of [start_year, end_year], strictly increasing."""
    if int(start_year) > int(end_year):
        raise ValueError(f"start_year {start_year} is after end_year {end_year}")
    freq = FREQ_MAP[resolution]
    if resolution is Resolution.DECADE:
        decades = range(decade_of(start_year), decade_of(end_year) + 1, 10)
        periods = [pd.Period(year=decade, freq=freq) for decade in decades]
        return pd.PeriodIndex(periods, name="date")
    if resolution is Resolution.YEAR:
        start = pd.Period(year=int(start_year), freq=freq)
        end = pd.Period(year=int(end_year), freq=freq)
    elif resolution is Resolution.MONTH:
        start = pd.Period(year=int(start_year), month=1, freq=freq)
        end = pd.Period(year=int(end_year), month=12, freq=freq)
    else:
        start = pd.Period(year=int(start_year), month=1, day=1, freq=freq)
        end = pd.Period(year=int(end_year), month=12, day=31, freq=freq)
    return pd.period_range(start=start, end=end, freq=freq, name="date")


def format_bucket(period: pd.Period, resolution: Resolution) -> str:
    return period.strftime(DATE_FORMATS[resolution])


def decimal_years(axis: pd.PeriodIndex) -> np.ndarray:
    """Numeric x positions (fractional years) usable on a linear axis."""
    years = np.asarray(axis.year, dtype=float)
    if len(axis) == 0 or axis.freqstr.startswith("Y") or axis.freqstr.startswith("A"):
        return years
    if axis.freqstr.startswith("M"):
        return years + (np.asarray(axis.month, dtype=float) - 1.0) / 12.0
    days_in_year = np.where(np.asarray(axis.is_leap_year, dtype=bool), 366.0, 365.0)
    return years + (np.asarray(axis.dayofyear, dtype=float) - 1.0) / days_in_year


def _safe_key(
    year: float,
    month: float,
    day: float,
    resolution: Resolution,
) -> pd.Period | None:
    try:
        return bucket_key(
            int(year),
            None if pd.isna(month) else int(month),
            None if pd.isna(day) else int(day),
            resolution,
        )
    except ValueError:
        return None


def _concat_observations(observations: Iterable[pd.DataFrame]) -> pd.DataFrame:
    frames = [frame.reindex(columns=RAW_COLUMNS) for frame in observations if not frame.empty]
    if not frames:
        return pd.DataFrame(columns=RAW_COLUMNS, dtype=float)
    combined = pd.concat(frames, ignore_index=True)
    for column in RAW_COLUMNS:
        combined[column] = pd.to_numeric(combined[column], errors="coerce")
    return combined.dropna(subset=["year"])


def _first_positive(values: pd.Series) -> float:
    positive = values[values > 0]
    if positive.empty:
        return 0.0 if values.notna().any() else np.nan
    return float(positive.iloc[0])


def _collapse_same_key(frame: pd.DataFrame, resolution: Resolution) -> pd.DataFrame:
    working = frame.copy()
    working["bucket"] = [
        _safe_key(year, month, day, resolution)
        for year, month, day in zip(working["year"], working["month"], working["day"])
    ]
    invalid = working["bucket"].isna()
    if invalid.any():
        LOGGER.warning("Dropping %d rows with invalid dates", int(invalid.sum()))
        working = working.loc[~invalid]

    # A row with a denominator but no count is a zero count, not a gap.
    working["n"] = working["n"].where(working["n"].notna() | working["total"].isna(), 0.0)
    # Duplicate rows describe the same period: counts add up, the corpus size does not.
    grouped = working.groupby("bucket", sort=True).agg(
        n=("n", lambda s: s.sum(min_count=1)),
        total=("total", _first_positive),
    )
    grouped.index = pd.PeriodIndex(grouped.index, freq=FREQ_MAP[resolution])
    return grouped


def aggregate_decades(yearly: pd.DataFrame) -> pd.DataFrame:
    """Sum a year-resolution ``n``/``total`` frame into decade buckets.

    Unlike same-key collisions, distinct years carry distinct denominators, so
    totals are summed here. Gap years add nothing to either column, and a
    decade where every year is a gap stays a gap.
    """
    gaps = gap_mask(yearly["total"].to_numpy(dtype=float))
    yearly = yearly.assign(n=yearly["n"].where(~gaps), total=yearly["total"].where(~gaps))
    decade_keys = pd.PeriodIndex(
        [pd.Period(year=decade_of(year), freq="Y") for year in yearly.index.year],
        freq="Y",
    )
    return yearly.groupby(decade_keys).agg(
        n=("n", lambda s: s.sum(min_count=1)),
        total=("total", lambda s: s.sum(min_count=1)),
    )


def align_observations(
    observations: Iterable[pd.DataFrame],
    resolution: Resolution,
    start_year: int,
    end_year: int,
) -> pd.DataFrame:
    """Map raw rows onto the gap-complete axis.

    Returns a frame indexed by ``date`` periods with ``n`` and ``total`` columns.
    Buckets without observations are NaN (gaps), never zero.
    """
    axis = build_time_axis(resolution, start_year, end_year)
    combined = _concat_observations(observations)
    if combined.empty:
        return pd.DataFrame({"n": np.nan, "total": np.nan}, index=axis, dtype=float)

    if resolution is Resolution.DECADE:
        yearly = _collapse_same_key(combined, Resolution.YEAR)
        in_range = (yearly.index.year >= int(start_year)) & (yearly.index.year <= int(end_year))
        collapsed = aggregate_decades(yearly.loc[in_range])
    else:
        collapsed = _collapse_same_key(combined, resolution)

    outside = ~collapsed.index.isin(axis)
    if outside.any():
        LOGGER.debug("Ignoring %d buckets outside the requested range", int(outside.sum()))
    aligned = collapsed.reindex(axis)[["n", "total"]].astype(float)
    aligned.index.name = "date"
    return aligned


def gap_mask(total: np.ndarray | pd.Series | None, length: int | None = None) -> np.ndarray:
    """True where a bucket has no usable denominator."""
    if total is None:
        return np.zeros(int(length or 0), dtype=bool)
    values = np.asarray(total, dtype=float)
    return ~np.isfinite(values) | (values <= 0.0)


def frequency(n: np.ndarray | pd.Series, total: np.ndarray | pd.Series) -> np.ndarray:
    """n / total on non-gap buckets, NaN elsewhere."""
    counts = np.asarray(n, dtype=float)
    totals = np.asarray(total, dtype=float)
    out = np.full(counts.shape, np.nan, dtype=float)
    valid = ~gap_mask(totals) & np.isfinite(counts)
    out[valid] = counts[valid] / totals[valid]
    return out
