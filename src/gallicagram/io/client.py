from __future__ import annotations

import asyncio
import logging
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from types import TracebackType

import httpx
import pandas as pd

from gallicagram.config import SourceConfig
from gallicagram.corpora import CorpusSpec, fetch_resolution, get_corpus, resolve_resolution
from gallicagram.io.read import empty_observations, parse_frequency_payload
from gallicagram.models import RAW_COLUMNS, Query, QueryResponse, Resolution

LOGGER = logging.getLogger(__name__)

SRU_DOCUMENT_TYPES = {"periodical": "fascicule", "book": "monographie"}


class UpstreamError(RuntimeError):
    """An upstream request failed (transport error or non-2xx status)."""


class NoDataError(LookupError):
    """Every requested query came back without rows."""


def normalize_term(word: str) -> str:
    return word.strip().replace("’", "'")


def query_resolution(query: Query, max_day_span_years: int = 20) -> Resolution:
    corpus = get_corpus(query.corpus)
    resolution = resolve_resolution(
        corpus,
        query.resolution,
        query.start_year,
        query.end_year,
        max_day_span_years=max_day_span_years,
    )
    if query.mode == "documents" and resolution.rank < Resolution.YEAR.rank:
        resolution = Resolution.YEAR
    return resolution


def _document_cql(word: str | None, year: int, corpus: CorpusSpec) -> str:
    clauses = []
    if word:
        clauses.append(f'(gallica all "{word}")')
    clauses.append(f'dc.date = "{year}"')
    source = corpus.gallica_filter.get("source")
    if source in SRU_DOCUMENT_TYPES:
        clauses.append(f'dc.type all "{SRU_DOCUMENT_TYPES[source]}"')
    if "code" in corpus.gallica_filter:
        clauses.append(f'arkPress all "{corpus.gallica_filter["code"]}_date"')
    return " and ".join(clauses)


def _parse_record_count(text: str) -> int | None:
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        LOGGER.warning("Could not parse SRU response: %s", exc)
        return None
    node = root.find(".//{*}numberOfRecords")
    if node is None or not (node.text or "").strip().isdigit():
        LOGGER.warning("SRU response without numberOfRecords")
        return None
    return int(node.text.strip())


class FrequencyClient:
    """Async client for the frequency and document-count services."""

    def __init__(self, config: SourceConfig | None = None, http: httpx.AsyncClient | None = None):
        self.config = config or SourceConfig()
        self._http = http
        self._owns_http = http is None

    async def __aenter__(self) -> FrequencyClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                follow_redirects=True,
                timeout=httpx.Timeout(self.config.timeout_seconds),
            )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            raise RuntimeError("FrequencyClient must be used as an async context manager")
        return self._http

    async def get(self, url: str, params: dict[str, object], *, label: str) -> httpx.Response:
        try:
            response = await self.http.get(url, params=params)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Request failed for {label}: {exc}") from exc
        if response.status_code >= 400:
            raise UpstreamError(f"Request failed for {label}: HTTP {response.status_code}")
        return response

    def occurrence_params(self, query: Query, resolution: Resolution) -> dict[str, object]:
        corpus = get_corpus(query.corpus)
        params: dict[str, object] = {"mot": normalize_term(query.word)}
        if corpus.sends_corpus_param:
            params["corpus"] = corpus.code
        params["from"] = int(query.start_year)
        params["to"] = int(query.end_year)
        params["resolution"] = fetch_resolution(resolution).value
        return params

    async def fetch_occurrences(self, query: Query, resolution: Resolution) -> pd.DataFrame:
        corpus = get_corpus(query.corpus)
        url = f"{self.config.base_url}/{corpus.endpoint}"
        response = await self.get(
            url,
            self.occurrence_params(query, resolution),
            label=f'"{query.word}"',
        )
        if not response.text.strip():
            LOGGER.info('Empty response body for "%s" in %s', query.word, corpus.code)
            return empty_observations()
        return parse_frequency_payload(
            response.text,
            content_type=response.headers.get("content-type"),
        )

    async def _count_records(self, cql: str, label: str) -> int | None:
        params = {
            "operation": "searchRetrieve",
            "version": "1.2",
            "query": cql,
            "maximumRecords": 1,
        }
        response = await self.get(self.config.sru_url, params, label=label)
        return _parse_record_count(response.text)

    async def fetch_document_counts(self, query: Query) -> pd.DataFrame:
        """Per-year document counts, issued in batches of concurrent requests."""
        corpus = get_corpus(query.corpus)
        if not corpus.supports_document_counts:
            raise ValueError(f"Document counts are not available for corpus: {corpus.code}")

        term = normalize_term(query.word)
        years = list(range(int(query.start_year), int(query.end_year) + 1))
        requests = [(year, word) for year in years for word in (term, None)]
        batch_size = int(self.config.document_batch_size)

        counts: dict[tuple[int, bool], int | None] = {}
        for offset in range(0, len(requests), batch_size):
            batch = requests[offset : offset + batch_size]
            results = await asyncio.gather(
                *(
                    self._count_records(
                        _document_cql(word, year, corpus),
                        label=f'"{term}" {year}',
                    )
                    for year, word in batch
                )
            )
            for (year, word), value in zip(batch, results):
                counts[(year, word is not None)] = value

        rows = [
            {
                "year": year,
                "month": None,
                "day": None,
                "n": counts.get((year, True)),
                "total": counts.get((year, False)),
            }
            for year in years
            if counts.get((year, True)) is not None
        ]
        if not rows:
            return empty_observations()
        frame = pd.DataFrame(rows, columns=RAW_COLUMNS)
        return frame.apply(pd.to_numeric, errors="coerce")

    async def fetch_query(self, query: Query, resolution: Resolution) -> QueryResponse:
        if not query.word.strip():
            return QueryResponse(query=query, data=empty_observations(), resolution=resolution)
        if query.mode == "documents":
            data = await self.fetch_document_counts(query)
        else:
            data = await self.fetch_occurrences(query, resolution)
        LOGGER.info('Fetched %d rows for "%s" (%s)', len(data), query.word, query.corpus)
        return QueryResponse(query=query, data=data, resolution=resolution)

    async def fetch_all(
        self,
        queries: Sequence[Query],
        *,
        max_day_span_years: int = 20,
    ) -> list[QueryResponse]:
        """Issue every query concurrently and wait for all of them."""
        return list(
            await asyncio.gather(
                *(
                    self.fetch_query(query, query_resolution(query, max_day_span_years))
                    for query in queries
                )
            )
        )
