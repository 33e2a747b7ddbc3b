from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from gallicagram.config import ChartConfig
from gallicagram.models import ConfidenceBand, Resolution, Trace
from gallicagram.series.bucketing import build_time_axis
from gallicagram.viz.common import figure_size, nice_step, nice_ticks, palette_color
from gallicagram.viz.time_series import plot_bars, plot_traces, render_png_bytes
from gallicagram.viz.totals import plot_totals, plot_word_cloud, word_cloud_layout

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def _trace_with_gap() -> tuple[Trace, ConfidenceBand]:
    axis = build_time_axis(Resolution.YEAR, 1900, 1904)
    y = np.array([0.1, 0.2, np.nan, 0.3, 0.2])
    band = ConfidenceBand(lower=y - 0.05, upper=y + 0.05, label="mot")
    return Trace(label="mot", x=axis, y=y), band


@pytest.mark.parametrize(
    ("span", "expected"),
    [(1.0, 0.2), (7.0, 2.0), (0.023, 0.005), (100.0, 20.0), (0.0, 1.0)],
)
def test_nice_step_rounds_to_one_two_five(span: float, expected: float) -> None:
    assert nice_step(span) == pytest.approx(expected)


def test_nice_ticks_cover_the_range() -> None:
    np.testing.assert_allclose(nice_ticks(0.0, 0.02), [0.0, 0.005, 0.01, 0.015, 0.02])
    ticks = nice_ticks(1789, 1950, target_ticks=8)
    assert ticks[0] <= 1789 and ticks[-1] >= 1950
    assert nice_ticks(np.nan, 1.0).size == 0


def test_palette_cycles() -> None:
    assert palette_color(0) == "#E63946"
    assert palette_color(10) == palette_color(0)
    assert palette_color(3, ["#000", "#fff"]) == "#fff"
    assert figure_size(1000, 500, 100) == (10.0, 5.0)


def test_band_segments_stop_at_gaps() -> None:
    _, band = _trace_with_gap()
    assert band.segments() == [(0, 2), (3, 5)]


def test_plot_traces_writes_png(tmp_path: Path) -> None:
    trace, band = _trace_with_gap()

    path = plot_traces([trace], [band], tmp_path / "figures" / "line.png")

    assert path.exists()
    assert path.read_bytes().startswith(PNG_SIGNATURE)


def test_render_png_bytes_with_raw_points() -> None:
    trace, _ = _trace_with_gap()

    chart = ChartConfig(width_px=400, height_px=200)

    png = render_png_bytes([trace], [None], chart, points=[trace])

    assert png.startswith(PNG_SIGNATURE)


def test_plot_bars_and_totals_views(tmp_path: Path) -> None:
    trace, _ = _trace_with_gap()
    totals = pd.DataFrame({"label": ["a", "b"], "total": [10.0, 5.0]})

    assert plot_bars([trace, trace.with_values(label="b")], tmp_path / "bars.png").exists()
    assert plot_totals(totals, tmp_path / "totals.png").exists()
    assert plot_totals(totals.iloc[0:0], tmp_path / "empty.png").exists()
    assert plot_word_cloud(totals, tmp_path / "cloud.png").exists()


def test_word_cloud_font_size_scales_with_total() -> None:
    totals = pd.DataFrame({"label": ["small", "big", "mid"], "total": [10.0, 40.0, 20.0]})

    layout = word_cloud_layout(totals)

    assert [item["label"] for item in layout] == ["big", "mid", "small"]
    assert [item["font_size"] for item in layout] == pytest.approx([60.0, 35.0, 22.5])
    assert layout[1]["x"] == pytest.approx(-1.0)
    assert word_cloud_layout(totals.iloc[0:0]) == []
