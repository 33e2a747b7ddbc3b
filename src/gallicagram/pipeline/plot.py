from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path

import pandas as pd

from gallicagram.config import AppConfig, IntervalsConfig, SmoothingConfig
from gallicagram.features.traces import build_traces, rescale_traces
from gallicagram.io.client import FrequencyClient, NoDataError, UpstreamError
from gallicagram.io.write import build_export_frame, write_summary, write_table
from gallicagram.models import ConfidenceBand, PlotType, Query, QueryResponse, Resolution, Trace
from gallicagram.paths import build_output_paths
from gallicagram.pipeline.state import (
    PlotState,
    begin_plot,
    fail_plot,
    initial_state,
    receive_responses,
)
from gallicagram.proportion_stats import build_totals_table, confidence_band
from gallicagram.series.smoothing import smooth_trace
from gallicagram.viz.time_series import plot_bars, plot_traces
from gallicagram.viz.totals import plot_totals, plot_word_cloud

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlotResult:
    traces: list[Trace]
    smoothed: list[Trace]
    bands: list[ConfidenceBand | None]
    totals: pd.DataFrame
    resolution: Resolution
    plot_type: PlotType = "line"
    state: PlotState | None = field(default=None, compare=False)


def _coarsest(responses: list[QueryResponse]) -> Resolution:
    if not responses:
        return Resolution.YEAR
    return max((response.resolution for response in responses), key=lambda item: item.rank)


def compute_plot(
    responses: list[QueryResponse],
    plot_type: PlotType = "line",
    smoothing: SmoothingConfig | None = None,
    intervals: IntervalsConfig | None = None,
    *,
    rescale: bool = False,
) -> PlotResult:
    """Align, smooth and band every response; no I/O."""
    smoothing = smoothing or SmoothingConfig()
    intervals = intervals or IntervalsConfig()

    traces = build_traces(responses, plot_type)
    smoothed = [
        smooth_trace(
            trace,
            smoothing.method,
            window=smoothing.window,
            span=smoothing.span,
            bridge_gaps=smoothing.bridge_gaps,
        )
        for trace in traces
    ]

    bands: list[ConfidenceBand | None] = [None] * len(smoothed)
    # Bands live on the frequency scale; a rescaled chart has no meaningful band.
    if intervals.enabled and plot_type == "line" and not rescale:
        bands = [confidence_band(trace, z=intervals.z) for trace in smoothed]
    if rescale:
        smoothed = rescale_traces(smoothed)

    return PlotResult(
        traces=traces,
        smoothed=smoothed,
        bands=bands,
        totals=build_totals_table(traces),
        resolution=_coarsest(responses),
        plot_type=plot_type,
    )


async def run_plot(
    queries: list[Query],
    config: AppConfig,
    client: FrequencyClient | None = None,
    *,
    plot_type: PlotType = "line",
    rescale: bool = False,
    state: PlotState | None = None,
) -> PlotResult:
    """Fetch every query, then compute the plot for the responses of this generation."""
    state = begin_plot(state or initial_state(queries))
    generation = state.generation
    max_span = config.query.max_day_span_years

    try:
        if client is None:
            async with FrequencyClient(config.source) as owned:
                responses = await owned.fetch_all(queries, max_day_span_years=max_span)
        else:
            responses = await client.fetch_all(queries, max_day_span_years=max_span)
    except UpstreamError as exc:
        state = fail_plot(state, generation, str(exc))
        LOGGER.error("Plot generation %d failed: %s", state.generation, state.error)
        raise

    state = receive_responses(state, generation, responses)
    if all(response.is_empty for response in responses):
        words = ", ".join(query.word for query in queries if query.word.strip())
        state = fail_plot(state, generation, f"No data found for: {words}")
        LOGGER.error("Plot generation %d failed: %s", state.generation, state.error)
        raise NoDataError(state.error)

    for response in responses:
        if response.is_empty:
            LOGGER.warning('No rows for "%s" in %s', response.query.word, response.query.corpus)

    result = compute_plot(
        responses,
        plot_type=plot_type,
        smoothing=config.smoothing,
        intervals=config.intervals,
        rescale=rescale,
    )
    return replace(result, state=state)


def write_plot_outputs(result: PlotResult, out_dir: Path, config: AppConfig) -> dict[str, Path]:
    paths = build_output_paths(out_dir)
    suffix = str(config.outputs.figures_format or "png").strip()
    figure_path = paths.figure(result.plot_type, suffix)

    if result.plot_type == "line":
        plot_traces(result.smoothed, result.bands, figure_path, config.chart)
    elif result.plot_type == "bar":
        plot_bars(result.smoothed, figure_path, config.chart)
    elif result.plot_type == "totals":
        plot_totals(result.totals, figure_path, config.chart)
    else:
        plot_word_cloud(result.totals, figure_path, config.chart)

    table_format = config.outputs.tables_format
    table_path = write_table(
        build_export_frame(result.smoothed),
        paths.table(table_format),
        fmt=table_format,
    )
    summary_path = write_summary(
        {
            "plot_type": result.plot_type,
            "resolution": result.resolution.value,
            "smoothing": config.smoothing.model_dump(),
            "traces": [
                {
                    "label": trace.label,
                    "corpus": trace.corpus,
                    "resolution": trace.resolution.value,
                    "buckets": len(trace),
                    "smoothed": trace.smoothed,
                }
                for trace in result.smoothed
            ],
            "totals": result.totals.to_dict(orient="records"),
        },
        paths.summary_file(),
    )
    LOGGER.info("Wrote %s, %s and %s", figure_path, table_path, summary_path)
    return {"figure": figure_path, "table": table_path, "summary": summary_path}
