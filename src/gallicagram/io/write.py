from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pandas as pd

from gallicagram.models import Trace
from gallicagram.series.bucketing import format_bucket


def write_table(df: pd.DataFrame, path: Path, fmt: str = "csv") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "parquet":
        df.to_parquet(path, index=False)
        return path
    if fmt == "csv":
        df.to_csv(path, index=False)
        return path
    raise ValueError(f"Unsupported table format: {fmt}")


def write_summary(data: dict[str, Any], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
    return path


def build_export_frame(traces: Sequence[Trace]) -> pd.DataFrame:
    """One row per bucket: ``date, <name>, [<name> (n), <name> (total)]...``."""
    columns: list[pd.DataFrame] = []
    for trace in traces:
        dates = [format_bucket(period, trace.resolution) for period in trace.x]
        data = {trace.label: trace.y}
        if trace.has_ratio:
            data[f"{trace.label} (n)"] = trace.n
            data[f"{trace.label} (total)"] = trace.total
        columns.append(pd.DataFrame(data, index=pd.Index(dates, name="date")))

    if not columns:
        return pd.DataFrame(columns=["date"])
    merged = pd.concat(columns, axis=1, join="outer").sort_index()
    return merged.reset_index()
