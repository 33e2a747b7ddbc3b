from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from gallicagram.models import Resolution, Trace
from gallicagram.proportion_stats import (
    band_segments,
    build_totals_table,
    confidence_band,
    frequency_interval,
    trace_total,
)
from gallicagram.series.bucketing import build_time_axis


def test_frequency_interval_bounds_contain_the_frequency() -> None:
    n = pd.Series([5, 0, 10, 40])
    totals = pd.Series([1000, 2000, 500, 50])

    lower, upper = frequency_interval(successes=n, totals=totals)
    p = (n / totals).to_numpy()

    assert np.all(lower >= 0.0)
    assert np.all(lower <= p)
    assert np.all(upper >= p)
    assert upper[0] == pytest.approx(0.005 + 1.96 * np.sqrt(0.005 * 0.995 / 1000))


def test_zero_count_uses_rule_of_three() -> None:
    lower, upper = frequency_interval(successes=np.array([0.0]), totals=np.array([2000.0]))

    assert lower[0] == 0.0
    assert upper[0] == pytest.approx(3 / 2000)


def test_gaps_have_no_interval() -> None:
    lower, upper = frequency_interval(
        successes=np.array([1.0, 1.0, np.nan]),
        totals=np.array([0.0, np.nan, 10.0]),
    )
    assert np.isnan(lower).all()
    assert np.isnan(upper).all()


def test_band_is_split_at_every_gap() -> None:
    lower = np.array([0.1, 0.1, np.nan, 0.2, 0.2])
    upper = np.array([0.3, 0.3, np.nan, 0.4, 0.4])

    assert band_segments(lower, upper) == [(0, 2), (3, 5)]


def test_confidence_band_only_for_frequency_traces() -> None:
    axis = build_time_axis(Resolution.YEAR, 2000, 2002)
    n = np.array([1.0, np.nan, 2.0])
    total = np.array([10.0, np.nan, 20.0])
    line = Trace(label="a", x=axis, y=n / total, n=n, total=total)
    bars = line.with_values(kind="bar", y=n)

    band = confidence_band(line)

    assert band is not None
    assert band.segments() == [(0, 1), (2, 3)]
    assert confidence_band(bars) is None


def test_totals_table_is_sorted_highest_first() -> None:
    axis = build_time_axis(Resolution.YEAR, 2000, 2001)
    traces = [
        Trace(label="rare", x=axis, y=np.zeros(2), n=np.array([1.0, np.nan]), total=np.ones(2)),
        Trace(label="common", x=axis, y=np.zeros(2), n=np.array([7.0, 5.0]), total=np.ones(2)),
    ]

    table = build_totals_table(traces)

    assert table["label"].tolist() == ["common", "rare"]
    assert table["total"].tolist() == [12.0, 1.0]
    assert trace_total(None) == 0.0


def test_interval_is_never_inverted_for_out_of_range_counts() -> None:
    lower, upper = frequency_interval(
        successes=np.array([-0.8, 120.0]),
        totals=np.array([1000.0, 100.0]),
    )

    assert np.all(lower <= upper)
    assert lower[0] == 0.0
    assert upper[0] == pytest.approx(3 / 1000)
    assert upper[1] == pytest.approx(1.0)
