"""Tool entry points: a frequency chart with an analysis prompt, and the corpus list."""

from __future__ import annotations

import base64
import logging
from dataclasses import asdict, dataclass, field
from typing import Any

import numpy as np

from gallicagram.config import AppConfig, load_config
from gallicagram.corpora import corpus_label, get_corpus, list_corpora
from gallicagram.features.traces import build_traces
from gallicagram.io.client import FrequencyClient, NoDataError
from gallicagram.models import Query, Resolution, Trace
from gallicagram.series.smoothing import moving_average
from gallicagram.viz.time_series import render_png_bytes

LOGGER = logging.getLogger(__name__)

CHART_SMOOTHING_WINDOW = 5


@dataclass(frozen=True)
class ChartToolResult:
    image_base64: str
    image_data_url: str
    analysis_prompt: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def split_words(mot: str) -> list[str]:
    return [word.strip() for word in str(mot).split(",") if word.strip()]


def generate_analysis_prompt(
    words: list[str],
    corpus: str,
    from_year: int | None,
    to_year: int | None,
) -> str:
    label = corpus_label(corpus)
    start = from_year if from_year is not None else "le début"
    end = to_year if to_year is not None else "la fin"
    return (
        "Agis en tant qu'historien expert. "
        f'Analyse l\'évolution de la fréquence de "{", ".join(words)}" '
        f'dans le corpus "{label}" entre {start} et {end}.\n\n'
        "Sur le graphique, les points représentent les données annuelles brutes "
        "et la ligne représente la tendance lissée.\n"
        "Identifie les événements historiques, culturels ou sociaux qui pourraient "
        "expliquer les pics ou les déclins observés."
    )


def _chart_line(trace: Trace, smooth: bool) -> Trace:
    values = np.asarray(trace.y, dtype=float)
    if not smooth or int(np.isfinite(values).sum()) <= CHART_SMOOTHING_WINDOW:
        return trace
    return trace.with_values(
        y=moving_average(values, CHART_SMOOTHING_WINDOW),
        smoothed="moving_average",
    )


async def gallicagram_chart(
    mot: str,
    corpus: str = "presse",
    from_year: int | None = None,
    to_year: int | None = None,
    smooth: bool = True,
    config: AppConfig | None = None,
    client: FrequencyClient | None = None,
) -> ChartToolResult:
    """Yearly frequency chart (ppm) for comma-separated words in one corpus."""
    config = config or load_config()
    words = split_words(mot)
    if not words:
        raise ValueError('The "mot" parameter is required')
    spec = get_corpus(corpus)
    start = from_year if from_year is not None else spec.first_year
    end = to_year if to_year is not None else spec.last_year
    if start > end:
        raise ValueError("from_year must not be after to_year")

    queries = [
        Query(
            id=index + 1,
            word=word,
            corpus=spec.code,
            start_year=start,
            end_year=end,
            resolution=Resolution.YEAR,
        )
        for index, word in enumerate(words)
    ]
    if client is None:
        async with FrequencyClient(config.source) as owned:
            responses = await owned.fetch_all(queries)
    else:
        responses = await client.fetch_all(queries)

    found = [response for response in responses if not response.is_empty]
    for response in responses:
        if response.is_empty:
            LOGGER.warning('No data for "%s" in %s', response.query.word, spec.code)
    if not found:
        raise NoDataError(f"No data found for: {', '.join(words)}")

    points = build_traces(found, "line")
    lines = [_chart_line(trace, smooth) for trace in points]
    png = render_png_bytes(
        lines,
        [None] * len(lines),
        config.chart,
        title=f"Gallicagram : {spec.display_label}",
        y_label="Fréquence (ppm)",
        scale=config.chart.frequency_scale,
        points=points,
    )
    image_base64 = base64.b64encode(png).decode("ascii")
    return ChartToolResult(
        image_base64=image_base64,
        image_data_url=f"data:image/png;base64,{image_base64}",
        analysis_prompt=generate_analysis_prompt(words, spec.code, from_year, to_year),
        metadata={
            "words": words,
            "corpus": spec.code,
            "corpus_label": spec.display_label,
            "from_year": from_year,
            "to_year": to_year,
            "smoothed": smooth,
        },
    )


def list_corpus() -> list[dict[str, str]]:
    return list_corpora()
