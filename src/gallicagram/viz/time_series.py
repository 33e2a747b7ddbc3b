from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes

from gallicagram.config import ChartConfig
from gallicagram.models import ConfidenceBand, Trace, contiguous_runs
from gallicagram.series.bucketing import decimal_years
from gallicagram.viz.common import (
    figure_png_bytes,
    figure_size,
    nice_ticks,
    palette_color,
    save_figure,
)


def _finite_max(arrays: Sequence[np.ndarray]) -> float:
    peaks = [float(np.nanmax(values)) for values in arrays if np.isfinite(values).any()]
    return max(peaks) if peaks else 0.0


def _apply_axes(
    ax: Axes,
    xs: Sequence[np.ndarray],
    y_max: float,
    *,
    title: str,
    y_label: str,
    x_label: str,
) -> None:
    x_values = [values for values in xs if values.size]
    if x_values:
        x_min = min(float(values.min()) for values in x_values)
        x_max = max(float(values.max()) for values in x_values)
        x_ticks = nice_ticks(x_min, x_max, target_ticks=8)
        x_ticks = x_ticks[(x_ticks >= x_min) & (x_ticks <= x_max)]
        if x_ticks.size:
            ax.set_xticks(x_ticks)
            ax.set_xticklabels([f"{tick:g}" for tick in x_ticks])
    y_ticks = nice_ticks(0.0, y_max if y_max > 0 else 1.0)
    ax.set_yticks(y_ticks)
    ax.set_ylim(float(y_ticks[0]), float(y_ticks[-1]))
    ax.set_title(title)
    ax.set_xlabel(x_label)
    ax.set_ylabel(y_label)


def _add_source(fig: plt.Figure, source_label: str) -> None:
    if source_label:
        fig.text(0.99, 0.01, source_label, ha="right", va="bottom", fontsize=8, color="#6b7280")


def _draw_line_chart(
    traces: Sequence[Trace],
    bands: Sequence[ConfidenceBand | None],
    chart: ChartConfig,
    *,
    title: str,
    y_label: str,
    scale: float,
    points: Sequence[Trace] | None,
) -> None:
    fig, ax = plt.subplots(figsize=figure_size(chart.width_px, chart.height_px, chart.dpi))
    scaled_arrays: list[np.ndarray] = []
    xs: list[np.ndarray] = []

    for index, trace in enumerate(traces):
        color = palette_color(index, chart.palette)
        x = decimal_years(trace.x)
        y = np.asarray(trace.y, dtype=float) * scale
        xs.append(x)
        scaled_arrays.append(y)

        band = bands[index] if index < len(bands) else None
        if band is not None:
            lower = band.lower * scale
            upper = band.upper * scale
            scaled_arrays.append(upper)
            for start, stop in band.segments():
                ax.fill_between(
                    x[start:stop],
                    lower[start:stop],
                    upper[start:stop],
                    color=color,
                    alpha=0.15,
                    linewidth=0,
                )

        # Each run of valid buckets is its own line: a gap is never bridged.
        label: str | None = trace.label
        for start, stop in contiguous_runs(np.isfinite(y)):
            ax.plot(
                x[start:stop],
                y[start:stop],
                color=color,
                linewidth=2.0,
                marker="o" if stop - start == 1 else None,
                markersize=3,
                label=label,
            )
            label = None

        if points is not None and index < len(points):
            raw = np.asarray(points[index].y, dtype=float) * scale
            scaled_arrays.append(raw)
            ax.scatter(decimal_years(points[index].x), raw, color=color, alpha=0.4, s=9)

    _apply_axes(
        ax,
        xs,
        _finite_max(scaled_arrays),
        title=title,
        y_label=y_label,
        x_label="Date",
    )
    if traces:
        ax.legend(
            loc="upper center",
            bbox_to_anchor=(0.5, -0.12),
            ncol=min(len(traces), 5),
            fontsize=8,
        )
    _add_source(fig, chart.source_label)


def plot_traces(
    traces: Sequence[Trace],
    bands: Sequence[ConfidenceBand | None],
    output_path: Path,
    chart: ChartConfig | None = None,
    *,
    title: str = "Frequency over time",
    y_label: str = "Frequency in the corpus",
    scale: float = 1.0,
    points: Sequence[Trace] | None = None,
) -> Path:
    chart = chart or ChartConfig()
    _draw_line_chart(
        traces,
        bands,
        chart,
        title=title,
        y_label=y_label,
        scale=scale,
        points=points,
    )
    return save_figure(output_path, dpi=chart.dpi)


def render_png_bytes(
    traces: Sequence[Trace],
    bands: Sequence[ConfidenceBand | None],
    chart: ChartConfig | None = None,
    *,
    title: str = "Frequency over time",
    y_label: str = "Frequency in the corpus",
    scale: float = 1.0,
    points: Sequence[Trace] | None = None,
) -> bytes:
    chart = chart or ChartConfig()
    _draw_line_chart(
        traces,
        bands,
        chart,
        title=title,
        y_label=y_label,
        scale=scale,
        points=points,
    )
    return figure_png_bytes(dpi=chart.dpi)


def plot_bars(
    traces: Sequence[Trace],
    output_path: Path,
    chart: ChartConfig | None = None,
    *,
    title: str = "Raw counts over time",
    y_label: str = "Occurrences",
) -> Path:
    chart = chart or ChartConfig()
    fig, ax = plt.subplots(figsize=figure_size(chart.width_px, chart.height_px, chart.dpi))
    xs: list[np.ndarray] = []
    heights: list[np.ndarray] = []
    group_width = 0.8 / max(1, len(traces))

    for index, trace in enumerate(traces):
        x = decimal_years(trace.x)
        y = np.asarray(trace.y, dtype=float)
        xs.append(x)
        heights.append(y)
        step = float(np.min(np.diff(x))) if x.size > 1 else 1.0
        offset = (index - (len(traces) - 1) / 2.0) * group_width * step
        valid = np.isfinite(y)
        ax.bar(
            x[valid] + offset,
            y[valid],
            width=group_width * step,
            color=palette_color(index, chart.palette),
            label=trace.label,
        )

    _apply_axes(ax, xs, _finite_max(heights), title=title, y_label=y_label, x_label="Date")
    if traces:
        ax.legend(loc="upper right", fontsize=8)
    _add_source(fig, chart.source_label)
    return save_figure(output_path, dpi=chart.dpi)
