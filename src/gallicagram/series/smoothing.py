from __future__ import annotations

import math
from collections.abc import Callable
from typing import Literal

import numpy as np
import pandas as pd

from gallicagram.models import Trace, contiguous_runs
from gallicagram.series.bucketing import frequency, gap_mask

SmoothingMethod = Literal["moving_average", "moving_sum", "loess"]

LOESS_SINGULAR_EPSILON = 1e-10


def _as_float_array(values: np.ndarray | pd.Series | list[float | None]) -> np.ndarray:
    if isinstance(values, pd.Series):
        return pd.to_numeric(values, errors="coerce").to_numpy(dtype=float)
    return np.array([np.nan if value is None else value for value in values], dtype=float)


def _by_segment(
    values: np.ndarray,
    breaks: np.ndarray,
    smoother: Callable[[np.ndarray], np.ndarray],
) -> np.ndarray:
    """Run ``smoother`` on each run between breaks; break positions stay NaN."""
    out = np.full(values.shape, np.nan, dtype=float)
    for start, stop in contiguous_runs(~breaks):
        out[start:stop] = smoother(values[start:stop])
    return out


def _rolling(values: np.ndarray, window: int, how: str) -> np.ndarray:
    half = int(window) // 2
    rolling = pd.Series(values).rolling(2 * half + 1, center=True, min_periods=1)
    return getattr(rolling, how)().to_numpy(dtype=float)


def _windowed(
    values: np.ndarray | pd.Series | list[float | None],
    window: int,
    how: str,
    bridge_gaps: bool,
    breaks: np.ndarray | None,
) -> np.ndarray:
    data = _as_float_array(values)
    if int(window) <= 1:
        return data.copy()
    if bridge_gaps:
        return _rolling(data, window, how)
    if breaks is None:
        breaks = ~np.isfinite(data)
    return _by_segment(data, breaks, lambda segment: _rolling(segment, window, how))


def moving_average(
    values: np.ndarray | pd.Series | list[float | None],
    window: int,
    *,
    bridge_gaps: bool = False,
    breaks: np.ndarray | None = None,
) -> np.ndarray:
    """Mean of non-null values within [i - window//2, i + window//2].

    Edge windows are truncated. Window 0 or 1 returns the input unchanged. By
    default a null value (or a ``breaks`` position) ends the window: each run
    of valid buckets is smoothed on its own and breaks stay null. With
    ``bridge_gaps`` the window spans nulls and only skips them.
    """
    return _windowed(values, window, "mean", bridge_gaps, breaks)


def moving_sum(
    values: np.ndarray | pd.Series | list[float | None],
    window: int,
    *,
    bridge_gaps: bool = False,
    breaks: np.ndarray | None = None,
) -> np.ndarray:
    """Same windowing as :func:`moving_average`, returning sums."""
    return _windowed(values, window, "sum", bridge_gaps, breaks)


def loess_bandwidth(span: float, n_points: int) -> int:
    alpha = 0.05 + (float(span) / 10.0) * 0.95
    return max(2, int(math.floor(alpha * n_points)))


def _tricube(distances: np.ndarray) -> np.ndarray:
    weights = np.zeros_like(distances)
    inside = np.abs(distances) < 1.0
    weights[inside] = (1.0 - np.abs(distances[inside]) ** 3) ** 3
    return weights


def _loess_point(
    index: int,
    positions: np.ndarray,
    observed: np.ndarray,
    bandwidth: int,
    original: float,
) -> float:
    if positions.size == 0:
        return np.nan
    distances = np.abs(positions - index).astype(float)
    nearest = np.argsort(distances, kind="stable")[:bandwidth]
    xs = positions[nearest].astype(float)
    ys = observed[nearest]
    local_distances = distances[nearest]
    max_distance = float(local_distances.max())
    if max_distance == 0.0:
        return original

    weights = _tricube(local_distances / max_distance)
    sum_w = weights.sum()
    if sum_w <= 0.0:
        return float(ys.mean())
    sum_wx = (weights * xs).sum()
    sum_wy = (weights * ys).sum()
    sum_wxx = (weights * xs * xs).sum()
    sum_wxy = (weights * xs * ys).sum()
    denominator = sum_w * sum_wxx - sum_wx * sum_wx
    if abs(denominator) < LOESS_SINGULAR_EPSILON:
        return float(sum_wy / sum_w)
    slope = (sum_w * sum_wxy - sum_wx * sum_wy) / denominator
    intercept = (sum_wy - slope * sum_wx) / sum_w
    return float(intercept + slope * index)


def _loess_series(data: np.ndarray, span: float) -> np.ndarray:
    valid = np.isfinite(data)
    positions = np.flatnonzero(valid)
    observed = data[valid]
    bandwidth = loess_bandwidth(span, positions.size)
    return np.array(
        [
            _loess_point(index, positions, observed, bandwidth, float(data[index]))
            for index in range(data.size)
        ],
        dtype=float,
    )


def loess(
    values: np.ndarray | pd.Series | list[float | None],
    span: float,
    *,
    bridge_gaps: bool = False,
    breaks: np.ndarray | None = None,
) -> np.ndarray:
    """Locally weighted linear regression over nearest-by-index neighbors.

    ``span`` in [0, 10] maps to a bandwidth fraction of 0.05..1.0 of the valid
    points. ``span == 0`` returns the input unchanged.
    """
    if float(span) <= 0.0:
        return values if isinstance(values, np.ndarray) else _as_float_array(values)
    if float(span) > 10.0:
        raise ValueError("span must be within [0, 10]")
    data = _as_float_array(values)
    if bridge_gaps:
        return _loess_series(data, span)
    if breaks is None:
        breaks = ~np.isfinite(data)
    return _by_segment(data, breaks, lambda segment: _loess_series(segment, span))


def smooth_values(
    values: np.ndarray,
    method: SmoothingMethod,
    *,
    window: int = 0,
    span: float = 0.0,
    bridge_gaps: bool = False,
    breaks: np.ndarray | None = None,
) -> np.ndarray:
    if method == "moving_average":
        return moving_average(values, window, bridge_gaps=bridge_gaps, breaks=breaks)
    if method == "moving_sum":
        return moving_sum(values, window, bridge_gaps=bridge_gaps, breaks=breaks)
    if method == "loess":
        return loess(values, span, bridge_gaps=bridge_gaps, breaks=breaks)
    raise ValueError(f"Unsupported smoothing method: {method}")


def is_identity(method: SmoothingMethod, window: int, span: float) -> bool:
    if method == "loess":
        return float(span) <= 0.0
    return int(window) <= 1


def smooth_trace(
    trace: Trace,
    method: SmoothingMethod = "moving_average",
    *,
    window: int = 0,
    span: float = 0.0,
    bridge_gaps: bool = False,
) -> Trace:
    """Return a smoothed copy of ``trace``.

    Frequency traces carrying ``n`` and ``total`` are smoothed as a ratio of
    smoothed sums (``sum(n) / sum(total)`` over each window) so that buckets
    with small denominators do not weigh as much as large ones. LOESS smooths
    ``n`` and ``total`` separately before taking the ratio. Other traces have
    ``y`` smoothed directly.
    """
    if is_identity(method, window, span):
        return trace

    if trace.kind == "line" and trace.has_ratio:
        breaks = gap_mask(trace.total)
        counts = np.where(breaks, np.nan, trace.n)
        totals = np.where(breaks, np.nan, trace.total)
        ratio_method: SmoothingMethod = "loess" if method == "loess" else "moving_sum"
        smoothed_n = smooth_values(
            counts, ratio_method, window=window, span=span, bridge_gaps=bridge_gaps, breaks=breaks
        )
        smoothed_total = smooth_values(
            totals, ratio_method, window=window, span=span, bridge_gaps=bridge_gaps, breaks=breaks
        )
        if ratio_method == "loess":
            # Local-linear fits can extrapolate below zero at the tails.
            smoothed_n = np.clip(smoothed_n, 0.0, None)
            smoothed_total = np.where(smoothed_total > 0.0, smoothed_total, np.nan)
        return trace.with_values(
            y=frequency(smoothed_n, smoothed_total),
            n=smoothed_n,
            total=smoothed_total,
            smoothed=method,
        )

    breaks = ~np.isfinite(np.asarray(trace.y, dtype=float))
    smoothed_y = smooth_values(
        trace.y, method, window=window, span=span, bridge_gaps=bridge_gaps, breaks=breaks
    )
    return trace.with_values(y=smoothed_y, smoothed=method)
