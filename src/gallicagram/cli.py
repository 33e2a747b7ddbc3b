from __future__ import annotations

import asyncio
import base64
from pathlib import Path
from typing import NoReturn, get_args

import typer

from gallicagram.config import AppConfig, load_config
from gallicagram.io.client import FrequencyClient, NoDataError, UpstreamError
from gallicagram.io.context import fetch_context
from gallicagram.logging import configure_logging
from gallicagram.models import PlotType, Query, QueryMode, Resolution
from gallicagram.pipeline.plot import run_plot, write_plot_outputs
from gallicagram.series.smoothing import SmoothingMethod
from gallicagram.tools import gallicagram_chart, list_corpus

app = typer.Typer(no_args_is_help=True, add_completion=False)


def _load_app_config(config_path: Path | None) -> AppConfig:
    return load_config(config_path)


def _fail(message: str) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


def _choice(value: str, choices: tuple[str, ...], hint: str) -> str:
    if value not in choices:
        raise typer.BadParameter(f"Expected one of: {', '.join(choices)}", param_hint=hint)
    return value


def _build_queries(
    words: list[str],
    corpus: str,
    start: int,
    end: int,
    resolution: str,
    mode: str,
) -> list[Query]:
    _choice(mode, get_args(QueryMode), "--mode")
    try:
        parsed = Resolution.parse(resolution)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--resolution") from exc
    if start > end:
        raise typer.BadParameter("--start must not be after --end")
    return [
        Query(
            id=index + 1,
            word=word,
            corpus=corpus,
            start_year=start,
            end_year=end,
            resolution=parsed,
            mode=mode,
        )
        for index, word in enumerate(words)
    ]


@app.command()
def plot(
    word: list[str] = typer.Option(..., "--word", "-w", help="Term to plot; repeat for several."),
    corpus: str = typer.Option("presse", help="Corpus code (see list-corpus)."),
    start: int = typer.Option(1789, help="First year, inclusive."),
    end: int = typer.Option(1950, help="Last year, inclusive."),
    resolution: str = typer.Option("annee", help="jour, mois, annee or decennie."),
    mode: str = typer.Option("occurrences", help="occurrences or documents."),
    plot_type: str = typer.Option("line", help="line, bar, totals or wordcloud."),
    smoothing: str | None = typer.Option(None, help="Override smoothing.method."),
    window: int | None = typer.Option(None, help="Override smoothing.window."),
    span: float | None = typer.Option(None, help="Override smoothing.span."),
    bridge_gaps: bool | None = typer.Option(None, help="Let smoothing windows span gaps."),
    rescale: bool = typer.Option(False, help="Divide each curve by its own maximum."),
    out: Path = typer.Option(Path("out"), resolve_path=True),
    config: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
) -> None:
    """Fetch, align and smooth the series, then write figure, table and summary."""
    configure_logging()
    _choice(plot_type, get_args(PlotType), "--plot-type")
    if smoothing is not None:
        _choice(smoothing, get_args(SmoothingMethod), "--smoothing")
    cfg = _load_app_config(config)
    overrides = {
        key: value
        for key, value in {
            "method": smoothing,
            "window": window,
            "span": span,
            "bridge_gaps": bridge_gaps,
        }.items()
        if value is not None
    }
    if overrides:
        try:
            cfg.smoothing = cfg.smoothing.model_validate(
                {**cfg.smoothing.model_dump(), **overrides}
            )
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc

    try:
        queries = _build_queries(word, corpus, start, end, resolution, mode)
        result = asyncio.run(run_plot(queries, cfg, plot_type=plot_type, rescale=rescale))
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except (UpstreamError, NoDataError) as exc:
        _fail(str(exc))

    paths = write_plot_outputs(result, out, cfg)
    typer.echo(f"Figure written to: {paths['figure']}")
    typer.echo(f"Table written to: {paths['table']}")
    typer.echo(f"Summary written to: {paths['summary']}")


@app.command()
def chart(
    mot: str = typer.Argument(..., help="Comma-separated words."),
    corpus: str = typer.Option("presse"),
    from_year: int | None = typer.Option(None, "--from"),
    to_year: int | None = typer.Option(None, "--to"),
    smooth: bool = typer.Option(True),
    out: Path = typer.Option(Path("out/chart.png"), resolve_path=True),
    config: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
) -> None:
    """Write a yearly frequency chart (ppm) and print its analysis prompt."""
    configure_logging()
    cfg = _load_app_config(config)
    try:
        result = asyncio.run(
            gallicagram_chart(
                mot,
                corpus=corpus,
                from_year=from_year,
                to_year=to_year,
                smooth=smooth,
                config=cfg,
            )
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except (UpstreamError, NoDataError) as exc:
        _fail(str(exc))

    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(base64.b64decode(result.image_base64))
    typer.echo(f"Chart written to: {out}")
    typer.echo(result.analysis_prompt)


@app.command("list-corpus")
def list_corpus_command() -> None:
    """Print the available corpora."""
    for item in list_corpus():
        typer.echo(f"{item['code']}\t{item['label']}")


@app.command()
def context(
    word: str = typer.Argument(...),
    date: str = typer.Argument(..., help="YYYY, YYYY-MM or YYYY-MM-DD."),
    corpus: str = typer.Option("presse"),
    limit: int = typer.Option(5, min=1),
    config: Path | None = typer.Option(None, exists=True, readable=True, resolve_path=True),
) -> None:
    """Print markdown snippets of the word in use around a date."""
    configure_logging()
    cfg = _load_app_config(config)

    async def _run() -> str:
        async with FrequencyClient(cfg.source) as client:
            return await fetch_context(client, word, date, corpus, limit=limit)

    try:
        markdown = asyncio.run(_run())
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except UpstreamError as exc:
        _fail(str(exc))
    typer.echo(markdown)


if __name__ == "__main__":
    app()
