from __future__ import annotations

import asyncio

import httpx
import pytest

from gallicagram.config import SourceConfig
from gallicagram.io.client import (
    FrequencyClient,
    UpstreamError,
    normalize_term,
    query_resolution,
)
from gallicagram.models import Query, Resolution

SRU_TEMPLATE = (
    '<srw:searchRetrieveResponse xmlns:srw="http://www.loc.gov/zing/srw/">'
    "<srw:numberOfRecords>{count}</srw:numberOfRecords>"
    "</srw:searchRetrieveResponse>"
)


def _run(handler, action, config: SourceConfig | None = None):
    async def _inner():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = FrequencyClient(config or SourceConfig(), http=http)
            return await action(client)

    return asyncio.run(_inner())


def test_fetch_all_sends_corpus_parameters_and_parses_rows() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="annee,n,total\n1900,2,200\n1901,4,400\n")

    queries = [
        Query(id=1, word="guerre", corpus="presse", start_year=1900, end_year=1901),
        Query(id=2, word="paix", corpus="persee", start_year=1900, end_year=1901),
    ]
    responses = _run(handler, lambda client: client.fetch_all(queries))

    assert [response.query.word for response in responses] == ["guerre", "paix"]
    assert responses[0].data["n"].tolist() == [2, 4]
    presse, persee = sorted(seen, key=lambda request: request.url.path)
    assert presse.url.path == "/guni/query"
    assert presse.url.params["corpus"] == "presse"
    assert presse.url.params["resolution"] == "annee"
    assert presse.url.params["from"] == "1900"
    assert persee.url.path == "/guni/query_persee"
    assert "corpus" not in persee.url.params


def test_decade_queries_fetch_yearly_rows() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="annee,n,total\n1900,2,200\n")

    query = Query(id=1, word="mot", corpus="livres", resolution=Resolution.DECADE)
    responses = _run(handler, lambda client: client.fetch_all([query]))

    assert seen[0].url.params["resolution"] == "annee"
    assert responses[0].resolution is Resolution.DECADE


def test_empty_word_is_not_requested() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    responses = _run(handler, lambda client: client.fetch_all([Query(id=1, word="  ")]))
    assert responses[0].is_empty


def test_empty_body_is_no_data_not_an_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="\n")

    responses = _run(handler, lambda client: client.fetch_all([Query(id=1, word="mot")]))
    assert responses[0].is_empty


def test_http_errors_raise_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with pytest.raises(UpstreamError, match="HTTP 500"):
        _run(handler, lambda client: client.fetch_all([Query(id=1, word="mot")]))


def test_transport_errors_raise_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(UpstreamError, match="unreachable"):
        _run(handler, lambda client: client.fetch_all([Query(id=1, word="mot")]))


def test_document_counts_query_sru_per_year_in_batches() -> None:
    queries_seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        cql = request.url.params["query"]
        queries_seen.append(cql)
        count = 7 if "gallica all" in cql else 100
        return httpx.Response(200, text=SRU_TEMPLATE.format(count=count))

    query = Query(
        id=1,
        word="république",
        corpus="moniteur",
        start_year=1800,
        end_year=1802,
        resolution=Resolution.DAY,
        mode="documents",
    )
    responses = _run(
        handler,
        lambda client: client.fetch_all([query]),
        config=SourceConfig(document_batch_size=4),
    )

    data = responses[0].data
    assert responses[0].resolution is Resolution.YEAR
    assert data["year"].tolist() == [1800, 1801, 1802]
    assert data["n"].tolist() == [7, 7, 7]
    assert data["total"].tolist() == [100, 100, 100]
    assert len(queries_seen) == 6
    assert all('arkPress all "cb344019391_date"' in cql for cql in queries_seen)
    assert any('(gallica all "république")' in cql for cql in queries_seen)
    assert all('dc.type all "fascicule"' in cql for cql in queries_seen)


def test_document_counts_skip_years_without_a_count() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if 'dc.date = "1901"' in request.url.params["query"]:
            return httpx.Response(200, text="<not-xml")
        return httpx.Response(200, text=SRU_TEMPLATE.format(count=3))

    query = Query(
        id=1, word="roi", corpus="livres", start_year=1900, end_year=1901, mode="documents"
    )
    responses = _run(handler, lambda client: client.fetch_all([query]))

    assert responses[0].data["year"].tolist() == [1900]


def test_document_counts_require_a_gallica_corpus() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    query = Query(id=1, word="mot", corpus="lemonde", mode="documents")
    with pytest.raises(ValueError, match="Document counts are not available"):
        _run(handler, lambda client: client.fetch_document_counts(query))


def test_client_requires_context_manager_without_injected_http() -> None:
    with pytest.raises(RuntimeError, match="async context manager"):
        FrequencyClient().http


def test_query_resolution_and_term_normalization() -> None:
    wide = Query(id=1, word="a", corpus="lemonde", start_year=1900, resolution=Resolution.DAY)
    narrow = Query(id=2, word="a", corpus="lemonde", start_year=1940, resolution=Resolution.DAY)

    assert query_resolution(wide) is Resolution.MONTH
    assert query_resolution(narrow) is Resolution.DAY
    assert normalize_term(" aujourd’hui ") == "aujourd'hui"
