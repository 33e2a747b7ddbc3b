from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Literal

import numpy as np
import pandas as pd

RAW_COLUMNS = ["year", "month", "day", "n", "total"]

PlotType = Literal["line", "bar", "totals", "wordcloud"]
QueryMode = Literal["occurrences", "documents"]


class Resolution(str, Enum):
    DAY = "jour"
    MONTH = "mois"
    YEAR = "annee"
    DECADE = "decennie"

    @classmethod
    def parse(cls, value: str | Resolution) -> Resolution:
        if isinstance(value, Resolution):
            return value
        key = str(value).strip().lower()
        aliases = {
            "day": cls.DAY,
            "jour": cls.DAY,
            "month": cls.MONTH,
            "mois": cls.MONTH,
            "year": cls.YEAR,
            "annee": cls.YEAR,
            "année": cls.YEAR,
            "decade": cls.DECADE,
            "decennie": cls.DECADE,
            "décennie": cls.DECADE,
        }
        if key not in aliases:
            raise ValueError(f"Unsupported resolution: {value}")
        return aliases[key]

    @property
    def rank(self) -> int:
        """Coarseness order: day < month < year < decade."""
        return [Resolution.DAY, Resolution.MONTH, Resolution.YEAR, Resolution.DECADE].index(self)


@dataclass(frozen=True)
class Query:
    id: int
    word: str
    corpus: str = "presse"
    start_year: int = 1789
    end_year: int = 1950
    resolution: Resolution = Resolution.YEAR
    mode: QueryMode = "occurrences"


@dataclass(frozen=True, eq=False)
class QueryResponse:
    query: Query
    data: pd.DataFrame
    resolution: Resolution

    @property
    def is_empty(self) -> bool:
        return self.data.empty


@dataclass(frozen=True, eq=False)
class Trace:
    label: str
    x: pd.PeriodIndex
    y: np.ndarray
    n: np.ndarray | None = None
    total: np.ndarray | None = None
    corpus: str | None = None
    resolution: Resolution = Resolution.YEAR
    kind: Literal["line", "bar"] = "line"
    smoothed: str | None = None

    def __len__(self) -> int:
        return len(self.x)

    @property
    def has_ratio(self) -> bool:
        return self.n is not None and self.total is not None

    def with_values(self, **changes: object) -> Trace:
        return replace(self, **changes)


@dataclass(frozen=True, eq=False)
class ConfidenceBand:
    lower: np.ndarray
    upper: np.ndarray
    label: str = ""

    def segments(self) -> list[tuple[int, int]]:
        valid = np.isfinite(self.lower) & np.isfinite(self.upper)
        return contiguous_runs(valid)


def contiguous_runs(mask: np.ndarray) -> list[tuple[int, int]]:
    """Half-open (start, stop) index runs where mask is True."""
    flags = np.asarray(mask, dtype=bool)
    if flags.size == 0:
        return []
    padded = np.concatenate(([0], flags.astype(int), [0]))
    edges = np.flatnonzero(np.diff(padded))
    return [(int(start), int(stop)) for start, stop in zip(edges[::2], edges[1::2])]
