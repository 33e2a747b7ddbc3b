"""Plot state and its reducers.

Every reducer returns a new :class:`PlotState`; nothing is mutated in place.
``begin_plot`` issues a new generation number and results are only accepted
for the generation that is still current, so a slow response to an older
request can never overwrite the outcome of a newer one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any

from gallicagram.config import SmoothingConfig
from gallicagram.models import PlotType, Query, QueryResponse

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlotState:
    queries: tuple[Query, ...] = (Query(id=1, word=""),)
    active_query_id: int = 1
    next_id: int = 2
    responses: tuple[QueryResponse, ...] = ()
    generation: int = 0
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    plot_type: PlotType = "line"
    error: str | None = None
    is_loading: bool = False

    def query(self, query_id: int) -> Query | None:
        for query in self.queries:
            if query.id == query_id:
                return query
        return None


def initial_state(queries: list[Query] | None = None) -> PlotState:
    if not queries:
        return PlotState()
    return PlotState(
        queries=tuple(queries),
        active_query_id=queries[0].id,
        next_id=max(query.id for query in queries) + 1,
    )


def add_query(state: PlotState, template: Query | None = None) -> PlotState:
    """Append a query that copies the active one's corpus and range, with an empty word."""
    base = template or state.query(state.active_query_id) or Query(id=state.next_id, word="")
    query = replace(base, id=state.next_id, word="" if template is None else base.word)
    return replace(
        state,
        queries=state.queries + (query,),
        active_query_id=query.id,
        next_id=state.next_id + 1,
    )


def remove_query(state: PlotState, query_id: int) -> PlotState:
    if len(state.queries) <= 1 or state.query(query_id) is None:
        return state
    remaining = tuple(query for query in state.queries if query.id != query_id)
    active = state.active_query_id
    if active == query_id:
        active = remaining[0].id
    return replace(state, queries=remaining, active_query_id=active)


def update_query(state: PlotState, query_id: int, **changes: Any) -> PlotState:
    current = state.query(query_id)
    if current is None:
        raise ValueError(f"Unknown query id: {query_id}")
    if "id" in changes:
        raise ValueError("Query id cannot be changed")
    updated = replace(current, **changes)
    if int(updated.start_year) > int(updated.end_year):
        raise ValueError("start_year must not be after end_year")
    queries = tuple(updated if query.id == query_id else query for query in state.queries)
    return replace(state, queries=queries)


def set_active_query(state: PlotState, query_id: int) -> PlotState:
    if state.query(query_id) is None:
        raise ValueError(f"Unknown query id: {query_id}")
    return replace(state, active_query_id=query_id)


def set_smoothing(state: PlotState, smoothing: SmoothingConfig) -> PlotState:
    return replace(state, smoothing=smoothing)


def set_plot_type(state: PlotState, plot_type: PlotType) -> PlotState:
    return replace(state, plot_type=plot_type)


def begin_plot(state: PlotState) -> PlotState:
    return replace(state, generation=state.generation + 1, is_loading=True, error=None)


def _is_current(state: PlotState, generation: int) -> bool:
    if generation != state.generation:
        LOGGER.info(
            "Discarding stale plot result (generation %d, current %d)",
            generation,
            state.generation,
        )
        return False
    return True


def receive_responses(
    state: PlotState,
    generation: int,
    responses: list[QueryResponse],
) -> PlotState:
    if not _is_current(state, generation):
        return state
    return replace(state, responses=tuple(responses), is_loading=False, error=None)


def fail_plot(state: PlotState, generation: int, message: str) -> PlotState:
    if not _is_current(state, generation):
        return state
    return replace(state, is_loading=False, error=message)
