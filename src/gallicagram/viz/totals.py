from __future__ import annotations

import math
from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd

from gallicagram.config import ChartConfig
from gallicagram.viz.common import figure_size, palette_color, save_figure

MIN_FONT_SIZE = 10.0
FONT_SIZE_RANGE = 50.0


def plot_totals(
    totals: pd.DataFrame,
    output_path: Path,
    chart: ChartConfig | None = None,
    *,
    title: str = "Total occurrences",
) -> Path:
    chart = chart or ChartConfig()
    fig, ax = plt.subplots(figsize=figure_size(chart.width_px, chart.height_px, chart.dpi))
    if totals.empty:
        ax.text(0.5, 0.5, "No data", ha="center", va="center")
        ax.axis("off")
        return save_figure(output_path, dpi=chart.dpi)

    ordered = totals.sort_values("total", ascending=False).reset_index(drop=True)
    # barh draws bottom-up, so reverse to put the highest total on top.
    ordered = ordered.iloc[::-1]
    colors = [palette_color(index, chart.palette) for index in ordered.index]
    ax.barh(ordered["label"].astype(str), ordered["total"].astype(float), color=colors)
    ax.set_title(title)
    ax.set_xlabel("Occurrences")
    if chart.source_label:
        fig.text(0.99, 0.01, chart.source_label, ha="right", va="bottom", fontsize=8)
    return save_figure(output_path, dpi=chart.dpi)


def word_cloud_layout(totals: pd.DataFrame) -> list[dict[str, float | str]]:
    """Place words evenly on a circle, font size proportional to total."""
    if totals.empty:
        return []
    ordered = totals.sort_values("total", ascending=False).reset_index(drop=True)
    max_total = float(ordered["total"].max())
    count = len(ordered)
    layout: list[dict[str, float | str]] = []
    for index, row in ordered.iterrows():
        angle = (index / (count - 1)) * 2.0 * math.pi if count > 1 else 0.0
        total = float(row["total"])
        ratio = total / max_total if max_total > 0 else 0.0
        layout.append(
            {
                "label": str(row["label"]),
                "x": math.cos(angle) if count > 1 else 0.0,
                "y": math.sin(angle) if count > 1 else 0.0,
                "font_size": MIN_FONT_SIZE + ratio * FONT_SIZE_RANGE,
            }
        )
    return layout


def plot_word_cloud(
    totals: pd.DataFrame,
    output_path: Path,
    chart: ChartConfig | None = None,
    *,
    title: str = "Word cloud",
) -> Path:
    chart = chart or ChartConfig()
    fig, ax = plt.subplots(figsize=figure_size(chart.width_px, chart.height_px, chart.dpi))
    for index, item in enumerate(word_cloud_layout(totals)):
        ax.text(
            float(item["x"]),
            float(item["y"]),
            str(item["label"]),
            ha="center",
            va="center",
            fontsize=float(item["font_size"]),
            color=palette_color(index, chart.palette),
        )
    ax.set_xlim(-1.6, 1.6)
    ax.set_ylim(-1.4, 1.4)
    ax.axis("off")
    ax.set_title(title)
    return save_figure(output_path, dpi=chart.dpi)
