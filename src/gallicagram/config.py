from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BASE_URL = "https://shiny.ens-paris-saclay.fr/guni"
DEFAULT_SRU_URL = "https://gallica.bnf.fr/SRU"
DEFAULT_PALETTE = [
    "#E63946",
    "#457B9D",
    "#2A9D8F",
    "#F4A261",
    "#E76F51",
    "#6A4C93",
    "#1982C4",
    "#8AC926",
    "#FFCA3A",
    "#FF595E",
]


class SourceConfig(BaseModel):
    base_url: str = DEFAULT_BASE_URL
    sru_url: str = DEFAULT_SRU_URL
    timeout_seconds: float = Field(default=30.0, gt=0.0)
    document_batch_size: int = Field(default=10, ge=1)


class SmoothingConfig(BaseModel):
    method: Literal["moving_average", "moving_sum", "loess"] = "moving_average"
    window: int = Field(default=0, ge=0, le=50)
    span: float = Field(default=0.0, ge=0.0, le=10.0)
    bridge_gaps: bool = False


class IntervalsConfig(BaseModel):
    enabled: bool = True
    z: float = Field(default=1.96, gt=0.0)


class ChartConfig(BaseModel):
    width_px: int = Field(default=1000, ge=100)
    height_px: int = Field(default=500, ge=100)
    dpi: int = Field(default=100, ge=50)
    source_label: str = "Source: gallicagram.com"
    palette: list[str] = Field(default_factory=lambda: list(DEFAULT_PALETTE), min_length=1)
    frequency_scale: float = Field(default=1e6, gt=0.0)


class QueryConfig(BaseModel):
    max_day_span_years: int = Field(default=20, ge=1)


class OutputsConfig(BaseModel):
    tables_format: Literal["csv", "parquet"] = "csv"
    figures_format: str = "png"


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: SourceConfig = Field(default_factory=SourceConfig)
    smoothing: SmoothingConfig = Field(default_factory=SmoothingConfig)
    intervals: IntervalsConfig = Field(default_factory=IntervalsConfig)
    chart: ChartConfig = Field(default_factory=ChartConfig)
    query: QueryConfig = Field(default_factory=QueryConfig)
    outputs: OutputsConfig = Field(default_factory=OutputsConfig)


DEFAULT_CONFIG_PATH = Path("configs/default.yaml")


def _apply_environment(config: AppConfig) -> AppConfig:
    if config.source.base_url == DEFAULT_BASE_URL:
        config.source.base_url = os.getenv("GALLICAGRAM_API_URL") or DEFAULT_BASE_URL
    config.source.base_url = config.source.base_url.rstrip("/")
    return config


def load_config(path: Path | None = None) -> AppConfig:
    """Load YAML configuration, falling back to defaults when no file is available."""
    if path is None:
        path = DEFAULT_CONFIG_PATH if DEFAULT_CONFIG_PATH.exists() else None
    if path is None:
        return _apply_environment(AppConfig())

    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    config = AppConfig.model_validate(data)
    return _apply_environment(config)
