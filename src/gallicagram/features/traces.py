from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from gallicagram.models import PlotType, Query, QueryResponse, Trace
from gallicagram.series.bucketing import align_observations, frequency


def trace_label(query: Query, all_same_corpus: bool) -> str:
    base = query.word.strip() or f"Query {query.id}"
    return base if all_same_corpus else f"{base} ({query.corpus})"


def build_trace(
    response: QueryResponse,
    plot_type: PlotType = "line",
    all_same_corpus: bool = True,
) -> Trace:
    query = response.query
    aligned = align_observations(
        [response.data],
        response.resolution,
        query.start_year,
        query.end_year,
    )
    n = aligned["n"].to_numpy(dtype=float)
    total = aligned["total"].to_numpy(dtype=float)
    kind = "line" if plot_type == "line" else "bar"
    y = frequency(n, total) if kind == "line" else n.copy()
    return Trace(
        label=trace_label(query, all_same_corpus),
        x=aligned.index,
        y=y,
        n=n,
        total=total,
        corpus=query.corpus,
        resolution=response.resolution,
        kind=kind,
    )


def build_traces(responses: Sequence[QueryResponse], plot_type: PlotType = "line") -> list[Trace]:
    corpora = {response.query.corpus for response in responses}
    all_same_corpus = len(corpora) <= 1
    return [build_trace(response, plot_type, all_same_corpus) for response in responses]


def rescale_traces(traces: Sequence[Trace]) -> list[Trace]:
    """Divide each trace by its own maximum so curves of different scale compare."""
    rescaled: list[Trace] = []
    for trace in traces:
        values = np.asarray(trace.y, dtype=float)
        peak = np.nanmax(values) if np.isfinite(values).any() else np.nan
        if not np.isfinite(peak) or peak <= 0.0:
            rescaled.append(trace)
            continue
        rescaled.append(trace.with_values(y=values / peak))
    return rescaled
