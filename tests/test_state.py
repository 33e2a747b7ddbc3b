from __future__ import annotations

import pandas as pd
import pytest

from gallicagram.config import SmoothingConfig
from gallicagram.models import Query, QueryResponse, Resolution
from gallicagram.pipeline.state import (
    PlotState,
    add_query,
    begin_plot,
    fail_plot,
    initial_state,
    receive_responses,
    remove_query,
    set_active_query,
    set_plot_type,
    set_smoothing,
    update_query,
)


def _response(word: str) -> QueryResponse:
    return QueryResponse(
        query=Query(id=1, word=word),
        data=pd.DataFrame({"year": [1900], "n": [1], "total": [10]}),
        resolution=Resolution.YEAR,
    )


def test_add_query_copies_active_corpus_and_range() -> None:
    state = initial_state(
        [Query(id=1, word="roi", corpus="livres", start_year=1700, end_year=1800)]
    )

    state = add_query(state)

    assert [query.id for query in state.queries] == [1, 2]
    added = state.query(2)
    assert added is not None
    assert (added.word, added.corpus, added.start_year) == ("", "livres", 1700)
    assert state.active_query_id == 2
    assert state.next_id == 3


def test_remove_query_never_removes_the_last_one() -> None:
    state = PlotState()
    assert remove_query(state, 1) is state

    state = remove_query(add_query(state), 2)
    assert [query.id for query in state.queries] == [1]
    assert state.active_query_id == 1


def test_update_query_replaces_fields_without_mutating() -> None:
    state = PlotState()

    updated = update_query(state, 1, word="peste", end_year=1900)

    assert updated.queries[0].word == "peste"
    assert state.queries[0].word == ""
    with pytest.raises(ValueError, match="start_year"):
        update_query(state, 1, start_year=1950, end_year=1900)
    with pytest.raises(ValueError, match="Unknown query"):
        update_query(state, 42, word="x")
    with pytest.raises(ValueError, match="Unknown query"):
        set_active_query(state, 42)


def test_settings_reducers() -> None:
    state = set_plot_type(set_smoothing(PlotState(), SmoothingConfig(window=5)), "bar")
    assert state.smoothing.window == 5
    assert state.plot_type == "bar"


def test_stale_responses_are_discarded(caplog) -> None:
    caplog.set_level("INFO")
    first = begin_plot(PlotState())
    second = begin_plot(first)

    after_fresh = receive_responses(second, second.generation, [_response("new")])
    after_stale = receive_responses(after_fresh, first.generation, [_response("old")])

    assert after_stale is after_fresh
    assert after_stale.responses[0].query.word == "new"
    assert after_stale.is_loading is False
    assert "Discarding stale plot result" in caplog.text


def test_stale_failures_do_not_clobber_state() -> None:
    first = begin_plot(PlotState())
    second = begin_plot(first)

    assert fail_plot(second, first.generation, "late timeout") is second
    failed = fail_plot(second, second.generation, "HTTP 500")
    assert failed.error == "HTTP 500"
    assert failed.is_loading is False
    assert begin_plot(failed).error is None
