from __future__ import annotations

import numpy as np
import pytest

from gallicagram.io.read import (
    detect_delimiter,
    normalize_observations,
    parse_frequency_payload,
)
from gallicagram.models import RAW_COLUMNS


def test_parse_csv_payload_with_french_headers() -> None:
    frame = parse_frequency_payload("annee;mois;n;total\n1900;1;4;100\n1900;2;;200\n")

    assert frame.columns.tolist() == RAW_COLUMNS
    assert frame["year"].tolist() == [1900, 1900]
    assert frame["month"].tolist() == [1, 2]
    assert np.isnan(frame["n"].iloc[1])
    assert frame["day"].isna().all()


def test_parse_csv_payload_strips_byte_order_mark() -> None:
    frame = parse_frequency_payload("\ufeffyear,n,total\n1950,3,30\n")
    assert frame["total"].tolist() == [30]


def test_parse_json_payload_with_iso_dates() -> None:
    frame = parse_frequency_payload(
        '{"data": [{"date": "1914-08-03", "count": 12, "total": 600}]}',
        content_type="application/json",
    )

    assert frame["year"].tolist() == [1914]
    assert frame["month"].tolist() == [8]
    assert frame["day"].tolist() == [3]
    assert frame["n"].tolist() == [12]


@pytest.mark.parametrize("text", ["", "   ", "not json {", '{"data": 3}', "foo,bar\n1,2\n"])
def test_malformed_payloads_are_empty(text: str) -> None:
    frame = parse_frequency_payload(text)
    assert frame.empty
    assert frame.columns.tolist() == RAW_COLUMNS


def test_detect_delimiter_reads_only_the_header() -> None:
    assert detect_delimiter("annee;n\n1;2") == ";"
    assert detect_delimiter("annee,n\n1;2") == ","


def test_normalize_drops_rows_without_year() -> None:
    frame = parse_frequency_payload("year,n,total\nabc,1,2\n2001,3,4\n")
    assert frame["year"].tolist() == [2001]
    assert normalize_observations(frame).equals(frame)
