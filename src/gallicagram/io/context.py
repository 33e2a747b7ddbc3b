"""Occurrence context snippets, rendered as markdown, for a word at a date."""

from __future__ import annotations

import asyncio
import io
import json
import logging
import re
from dataclasses import dataclass
from typing import Any

import pandas as pd

from gallicagram.corpora import CorpusSpec, get_corpus
from gallicagram.io.client import FrequencyClient, UpstreamError, normalize_term

LOGGER = logging.getLogger(__name__)

LEMONDE_SEARCH_URL = "https://www.lemonde.fr/recherche/"
PERSEE_BASE_URL = "https://www.persee.fr"
SEPARATOR = "\n\n---\n\n"

_TAG = re.compile(r"<[^>]+>")
_LEMONDE_TEASER = re.compile(r'<section[^>]*class="teaser[^"]*"[^>]*>([\s\S]*?)</section>')
_LEMONDE_TITLE = re.compile(r'<h3[^>]*class="teaser__title"[^>]*>([\s\S]*?)</h3>')
_LEMONDE_LINK = re.compile(r'<a[^>]*class="teaser__link"[^>]*href="([^"]+)"')
_LEMONDE_DESC = re.compile(r'<p[^>]*class="teaser__desc"[^>]*>([\s\S]*?)</p>')
_LEMONDE_DATE = re.compile(r'<span[^>]*class="meta__date"[^>]*>([\s\S]*?)</span>')
_PERSEE_DOC = re.compile(r'<div[^>]*class="doc-result[^"]*"[^>]*>([\s\S]*?)</div>\s*</div>')
_PERSEE_TITLE = re.compile(r'<a[^>]*class="title[^"]*"[^>]*href="([^"]+)"[^>]*>([\s\S]*?)</a>')
_PERSEE_AUTHOR = re.compile(r'<span[^>]*class="name"[^>]*>([\s\S]*?)</span>')
_PERSEE_SNIPPET = re.compile(r'<div[^>]*class="searchContext"[^>]*>([\s\S]*?)</div>')
_HREF = re.compile(r"href=['\"]([^'\"]+)['\"]")


@dataclass(frozen=True)
class ContextDate:
    year: int
    month: int | None = None
    day: int | None = None


def parse_context_date(value: str) -> ContextDate:
    """Parse ``YYYY``, ``YYYY-MM`` or ``YYYY-MM-DD``."""
    parts = [part for part in str(value).strip().split("-") if part]
    try:
        numbers = [int(part) for part in parts[:3]]
    except ValueError as exc:
        raise ValueError(f"Invalid date: {value}") from exc
    if not numbers:
        raise ValueError(f"Invalid date: {value}")
    month = numbers[1] if len(numbers) > 1 else None
    day = numbers[2] if len(numbers) > 2 else None
    return ContextDate(year=numbers[0], month=month, day=day)


def _strip_tags(fragment: str) -> str:
    return _TAG.sub("", fragment).strip()


def gallica_terms(word: str) -> str:
    term = word.strip()
    if len(term.split()) > 1:
        term = f'"{term}"'
    return normalize_term(term)


def _json_payload(text: str, label: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise UpstreamError(f"Invalid JSON from {label}: {exc}") from exc


def _record_date_params(record: dict[str, Any], date: ContextDate) -> dict[str, int]:
    stamp = pd.to_datetime(record.get("date"), errors="coerce")
    if stamp is not None and not pd.isna(stamp):
        return {"month": int(stamp.month), "day": int(stamp.day)}
    params: dict[str, int] = {}
    if date.month is not None:
        params["month"] = date.month
        if date.day is not None:
            params["day"] = date.day
    return params


async def _gallica_record_section(
    client: FrequencyClient,
    record: dict[str, Any],
    terms: str,
    date: ContextDate,
    corpus: CorpusSpec,
) -> str | None:
    context_params: dict[str, object] = {
        "ark": record.get("ark", ""),
        "url": record.get("url", ""),
        "terms": terms,
    }
    context_params.update(_record_date_params(record, date))
    context_params.update(corpus.gallica_filter)
    try:
        context_response = await client.get(
            f"{client.config.base_url}/api/context",
            context_params,
            label=f"context {record.get('ark')}",
        )
        snippets = _json_payload(context_response.text, "Gallica context")
    except UpstreamError as exc:
        LOGGER.warning("Skipping context for %s: %s", record.get("ark"), exc)
        return None
    lines = [
        f"...{item.get('left_context', '')} **{item.get('pivot', '')}** "
        f"{item.get('right_context', '')}..."
        for item in (snippets if isinstance(snippets, list) else [])
    ]
    record_date = str(record.get("date", "")).split("T")[0]
    return (
        f"### [{record.get('paper_title', '')}]({record.get('url', '')})\n"
        f"**Date:** {record_date}\n\n" + "\n".join(lines)
    )


async def fetch_gallica_context(
    client: FrequencyClient,
    word: str,
    date: ContextDate,
    corpus: CorpusSpec,
    limit: int,
) -> str:
    terms = gallica_terms(word)
    params: dict[str, object] = {
        "terms": terms,
        "year": date.year,
        "limit": limit,
        "cursor": 0,
        "sort": "relevance",
    }
    if date.month is not None:
        params["month"] = date.month
        if date.day is not None:
            params["day"] = date.day
    params.update(corpus.gallica_filter)

    base_url = client.config.base_url
    response = await client.get(
        f"{base_url}/api/occurrences_no_context",
        params,
        label="Gallica occurrences",
    )
    payload = _json_payload(response.text, "Gallica occurrences")
    records = payload.get("records") if isinstance(payload, dict) else None
    if not records:
        return (
            f'Aucune occurrence trouvée pour "{word}" le {_format_date(date)} '
            f"dans le corpus Gallica ({corpus.code})."
        )

    sections = await asyncio.gather(
        *(_gallica_record_section(client, record, terms, date, corpus) for record in records)
    )
    return SEPARATOR.join(section for section in sections if section is not None)


async def fetch_lemonde_context(client: FrequencyClient, word: str, year: int, limit: int) -> str:
    params = {
        "search_keywords": word,
        "page_recherche": 1,
        "start_at": f"01/01/{year}",
        "end_at": f"31/12/{year}",
    }
    response = await client.get(LEMONDE_SEARCH_URL, params, label="Le Monde search")
    sections: list[str] = []
    for match in _LEMONDE_TEASER.finditer(response.text):
        if len(sections) >= limit:
            break
        content = match.group(1)
        title = _LEMONDE_TITLE.search(content)
        link = _LEMONDE_LINK.search(content)
        if not (title and link):
            continue
        description = _LEMONDE_DESC.search(content)
        published = _LEMONDE_DATE.search(content)
        sections.append(
            f"### [{_strip_tags(title.group(1))}]({link.group(1)})\n"
            f"**Date:** {_strip_tags(published.group(1)) if published else ''}\n\n"
            f"{_strip_tags(description.group(1)) if description else ''}"
        )
    if not sections:
        return f'Aucun résultat trouvé dans Le Monde pour "{word}" en {year}.'
    return SEPARATOR.join(sections)


def _persee_snippet(fragment: str) -> str:
    highlighted = fragment.replace('<span class="highlight">', "**").replace("</span>", "**")
    return _strip_tags(highlighted)


async def fetch_persee_context(client: FrequencyClient, word: str, year: int, limit: int) -> str:
    params = {"l": "fre", "da": year, "q": f'"{word}"'}
    response = await client.get(f"{PERSEE_BASE_URL}/search", params, label="Persée search")
    sections: list[str] = []
    for match in _PERSEE_DOC.finditer(response.text):
        if len(sections) >= limit:
            break
        content = match.group(1)
        title = _PERSEE_TITLE.search(content)
        if not title:
            continue
        author = _PERSEE_AUTHOR.search(content)
        snippet = _PERSEE_SNIPPET.search(content)
        sections.append(
            f"### [{_strip_tags(title.group(2))}]({PERSEE_BASE_URL}{title.group(1)})\n"
            f"**Auteur:** {_strip_tags(author.group(1)) if author else ''}\n\n"
            f"{_persee_snippet(snippet.group(1)) if snippet else ''}"
        )
    if not sections:
        return f'Aucun résultat trouvé dans Persée pour "{word}" en {year}.'
    return SEPARATOR.join(sections)


def _first_value(row: pd.Series, names: tuple[str, ...], default: str) -> str:
    for name in names:
        value = row.get(name)
        if value is not None and not pd.isna(value) and str(value).strip():
            return str(value)
    return default


def _rap_url(raw: str) -> str:
    if "<a " in raw:
        match = _HREF.search(raw)
        return match.group(1) if match else "#"
    return raw


async def fetch_rap_context(client: FrequencyClient, word: str, year: int, limit: int) -> str:
    params = {"mot": normalize_term(word), "year": year}
    response = await client.get(
        f"{client.config.base_url}/source_rap",
        params,
        label="rap sources",
    )
    text = response.text.strip()
    if not text:
        return f'Aucun résultat trouvé dans le corpus RAP pour "{word}" en {year}.'
    try:
        frame = pd.read_csv(io.StringIO(text))
    except (ValueError, pd.errors.ParserError) as exc:
        raise UpstreamError(f"Could not parse rap sources: {exc}") from exc
    if frame.empty:
        return f'Aucun résultat trouvé dans le corpus RAP pour "{word}" en {year}.'

    if "counts" in frame.columns:
        counts = pd.to_numeric(frame["counts"], errors="coerce").fillna(0)
    else:
        counts = pd.Series(0, index=frame.index)
    frame = frame.assign(_counts=counts).sort_values("_counts", ascending=False, kind="stable")
    sections = []
    for _, row in frame.head(limit).iterrows():
        url = _rap_url(_first_value(row, ("url", "URL"), "#"))
        sections.append(
            f"### [{_first_value(row, ('title', 'titre'), 'Sans titre')}]({url})\n"
            f"**Artiste:** {_first_value(row, ('artist', 'artiste'), 'Inconnu')}\n"
            f"**Album:** {_first_value(row, ('album',), '-')}\n"
            f"**Occurrences:** {_first_value(row, ('counts',), '0')}"
        )
    return SEPARATOR.join(sections)


def _format_date(date: ContextDate) -> str:
    parts = [f"{date.year:04d}"]
    if date.month is not None:
        parts.append(f"{date.month:02d}")
        if date.day is not None:
            parts.append(f"{date.day:02d}")
    return "-".join(parts)


async def fetch_context(
    client: FrequencyClient,
    word: str,
    date: str,
    corpus: str,
    limit: int = 5,
) -> str:
    """Return markdown snippets showing ``word`` in use around ``date``."""
    spec = get_corpus(corpus)
    parsed = parse_context_date(date)
    if limit < 1:
        raise ValueError("limit must be at least 1")
    if spec.context_kind == "lemonde":
        return await fetch_lemonde_context(client, word, parsed.year, limit)
    if spec.context_kind == "persee":
        return await fetch_persee_context(client, word, parsed.year, limit)
    if spec.context_kind == "rap":
        return await fetch_rap_context(client, word, parsed.year, limit)
    if spec.context_kind == "gallica":
        return await fetch_gallica_context(client, word, parsed, spec, limit)
    raise ValueError(f"Context snippets are not available for corpus: {spec.code}")
