from __future__ import annotations

import io
import json
import logging

import pandas as pd

from gallicagram.models import RAW_COLUMNS

LOGGER = logging.getLogger(__name__)

COLUMN_ALIASES = {
    "year": ("annee", "année", "year", "date"),
    "month": ("mois", "month"),
    "day": ("jour", "day"),
    "n": ("n", "count", "nombre"),
    "total": ("total", "tot", "sum"),
}


def empty_observations() -> pd.DataFrame:
    return pd.DataFrame({column: pd.Series(dtype=float) for column in RAW_COLUMNS})


def detect_delimiter(text: str) -> str:
    header = text.lstrip("\ufeff").split("\n", 1)[0]
    return ";" if ";" in header else ","


def _split_iso_dates(values: pd.Series) -> pd.DataFrame:
    parts = values.astype(str).str.strip().str.split("-", n=2, expand=True)
    parts = parts.reindex(columns=[0, 1, 2])
    return pd.DataFrame(
        {
            "year": pd.to_numeric(parts[0], errors="coerce"),
            "month": pd.to_numeric(parts[1], errors="coerce"),
            "day": pd.to_numeric(parts[2].astype(str).str.slice(0, 2), errors="coerce"),
        },
        index=values.index,
    )


def normalize_observations(frame: pd.DataFrame) -> pd.DataFrame:
    """Rename upstream columns to year/month/day/n/total and coerce to numbers."""
    lowered = {str(column).strip().lower(): column for column in frame.columns}
    rename_map: dict[str, str] = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in lowered and lowered[alias] not in rename_map:
                rename_map[lowered[alias]] = canonical
                break

    working = frame.rename(columns=rename_map)
    missing = [column for column in ("year", "n") if column not in working.columns]
    if missing:
        LOGGER.warning("Frequency payload missing columns: %s", ", ".join(missing))
        return empty_observations()

    year_values = working["year"]
    has_iso_dates = not pd.api.types.is_numeric_dtype(year_values) and bool(
        year_values.astype(str).str.contains("-").any()
    )
    if has_iso_dates:
        split = _split_iso_dates(year_values)
        working["year"] = split["year"]
        for part in ("month", "day"):
            if part not in working.columns:
                working[part] = split[part]

    out = working.reindex(columns=RAW_COLUMNS)
    for column in RAW_COLUMNS:
        out[column] = pd.to_numeric(out[column], errors="coerce")
    dropped = int(out["year"].isna().sum())
    if dropped:
        LOGGER.debug("Dropping %d rows without a year", dropped)
    return out.dropna(subset=["year"]).reset_index(drop=True)


def _parse_json(text: str) -> pd.DataFrame:
    payload = json.loads(text)
    if isinstance(payload, dict):
        payload = payload.get("data", payload.get("records", []))
    if not isinstance(payload, list):
        raise ValueError("JSON frequency payload must be a list of records")
    return pd.DataFrame.from_records(payload)


def parse_frequency_payload(text: str, content_type: str | None = None) -> pd.DataFrame:
    """Parse a CSV or JSON frequency response into raw observations.

    Malformed payloads are logged and treated as no data.
    """
    body = (text or "").strip()
    if not body:
        return empty_observations()

    looks_like_json = body[:1] in "[{" or "json" in (content_type or "").lower()
    try:
        if looks_like_json:
            frame = _parse_json(body)
        else:
            # utf-8 exports sometimes keep a BOM on the header line.
            frame = pd.read_csv(
                io.StringIO(body.lstrip("\ufeff")),
                sep=detect_delimiter(body),
                skip_blank_lines=True,
            )
    except (ValueError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        LOGGER.error("Could not parse frequency payload: %s", exc)
        return empty_observations()

    if frame.empty:
        return empty_observations()
    return normalize_observations(frame)
