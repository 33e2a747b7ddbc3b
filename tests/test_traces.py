from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from gallicagram.features.traces import build_trace, build_traces, rescale_traces, trace_label
from gallicagram.io.write import build_export_frame
from gallicagram.models import Query, QueryResponse, Resolution


def _response(query: Query, years: list[int], n: list[int], total: list[int]) -> QueryResponse:
    data = pd.DataFrame({"year": years, "n": n, "total": total})
    return QueryResponse(query=query, data=data, resolution=query.resolution)


def test_trace_label_adds_corpus_when_corpora_differ() -> None:
    query = Query(id=3, word=" guerre ", corpus="livres")

    assert trace_label(query, all_same_corpus=True) == "guerre"
    assert trace_label(query, all_same_corpus=False) == "guerre (livres)"
    assert trace_label(Query(id=3, word=""), all_same_corpus=True) == "Query 3"


def test_build_traces_labels_mixed_corpora() -> None:
    presse = Query(id=1, word="a", corpus="presse", start_year=1900, end_year=1901)
    livres = Query(id=2, word="a", corpus="livres", start_year=1900, end_year=1901)
    responses = [
        _response(presse, [1900], [1], [10]),
        _response(livres, [1901], [2], [20]),
    ]

    traces = build_traces(responses)

    assert [trace.label for trace in traces] == ["a (presse)", "a (livres)"]
    assert len(traces[0]) == 2
    assert np.isnan(traces[0].y[1])


def test_bar_trace_plots_raw_counts() -> None:
    query = Query(id=1, word="a", start_year=1900, end_year=1902)
    trace = build_trace(_response(query, [1900, 1902], [4, 6], [40, 60]), plot_type="bar")

    assert trace.kind == "bar"
    assert trace.y[0] == 4.0
    assert np.isnan(trace.y[1])
    assert trace.has_ratio


def test_rescale_divides_by_each_peak() -> None:
    query = Query(id=1, word="a", start_year=1900, end_year=1901)
    trace = build_trace(_response(query, [1900, 1901], [1, 4], [10, 10]))
    empty = build_trace(_response(query, [], [], []))

    rescaled, untouched = rescale_traces([trace, empty])

    np.testing.assert_allclose(rescaled.y, [0.25, 1.0])
    assert untouched is empty


def test_export_frame_joins_traces_on_formatted_dates() -> None:
    monthly = Query(id=1, word="a", start_year=1900, end_year=1900, resolution=Resolution.MONTH)
    data = pd.DataFrame({"year": [1900], "month": [3], "n": [2], "total": [8]})
    trace = build_trace(QueryResponse(query=monthly, data=data, resolution=Resolution.MONTH))

    frame = build_export_frame([trace])

    assert frame.columns.tolist() == ["date", "a", "a (n)", "a (total)"]
    assert len(frame) == 12
    row = frame.loc[frame["date"] == "1900-03"].iloc[0]
    assert row["a"] == pytest.approx(0.25)
    assert row["a (n)"] == 2.0
    assert build_export_frame([]).columns.tolist() == ["date"]
