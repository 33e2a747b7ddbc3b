from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import pandas as pd

from gallicagram.models import ConfidenceBand, Trace, contiguous_runs

DEFAULT_Z = 1.96
ZERO_COUNT_RULE = 3.0


def _to_float_array(values: pd.Series | np.ndarray) -> np.ndarray:
    if isinstance(values, pd.Series):
        return pd.to_numeric(values, errors="coerce").to_numpy(dtype=float)
    return np.asarray(values, dtype=float)


def frequency_interval(
    successes: pd.Series | np.ndarray,
    totals: pd.Series | np.ndarray,
    z: float = DEFAULT_Z,
) -> tuple[np.ndarray, np.ndarray]:
    """Normal-approximation interval around n/total, per bucket.

    Zero counts use the rule of three, ``[0, 3/total]``, instead of a
    zero-width interval. Buckets without a positive total are NaN.
    """
    n = _to_float_array(totals)
    k = _to_float_array(successes)

    lower = np.full(n.shape, np.nan, dtype=float)
    upper = np.full(n.shape, np.nan, dtype=float)

    valid = np.isfinite(n) & np.isfinite(k) & (n > 0.0)
    if not np.any(valid):
        return lower, upper

    n_valid = n[valid]
    k_valid = k[valid]
    p_valid = k_valid / n_valid
    p_clipped = np.clip(p_valid, 0.0, 1.0)
    half_width = z * np.sqrt(p_clipped * (1.0 - p_clipped) / n_valid)

    zero = k_valid <= 0.0
    lower[valid] = np.where(zero, 0.0, np.maximum(0.0, p_clipped - half_width))
    upper[valid] = np.where(zero, ZERO_COUNT_RULE / n_valid, p_clipped + half_width)
    return lower, upper


def band_segments(lower: np.ndarray, upper: np.ndarray) -> list[tuple[int, int]]:
    """Half-open index runs of drawable band points; every gap splits the band."""
    valid = np.isfinite(_to_float_array(lower)) & np.isfinite(_to_float_array(upper))
    return contiguous_runs(valid)


def confidence_band(trace: Trace, z: float = DEFAULT_Z) -> ConfidenceBand | None:
    if not trace.has_ratio or trace.kind != "line":
        return None
    lower, upper = frequency_interval(successes=trace.n, totals=trace.total, z=z)
    return ConfidenceBand(lower=lower, upper=upper, label=trace.label)


def trace_total(n: np.ndarray | None) -> float:
    if n is None:
        return 0.0
    values = _to_float_array(n)
    return float(np.nansum(values)) if values.size else 0.0


def build_totals_table(traces: Sequence[Trace]) -> pd.DataFrame:
    """Total occurrences per trace, highest first."""
    rows = [
        {"label": trace.label, "total": trace_total(trace.n if trace.n is not None else trace.y)}
        for trace in traces
    ]
    if not rows:
        return pd.DataFrame(columns=["label", "total"])
    table = pd.DataFrame(rows)
    return table.sort_values(["total", "label"], ascending=[False, True]).reset_index(drop=True)
