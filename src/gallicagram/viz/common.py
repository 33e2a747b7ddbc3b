from __future__ import annotations

import io
import math
from collections.abc import Sequence
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from gallicagram.config import DEFAULT_PALETTE

NICE_FACTORS = (1.0, 2.0, 5.0, 10.0)


def save_figure(path: Path, dpi: int | None = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    plt.tight_layout()
    plt.savefig(path, dpi=dpi)
    plt.close()
    return path


def figure_png_bytes(dpi: int | None = None) -> bytes:
    buffer = io.BytesIO()
    plt.tight_layout()
    plt.savefig(buffer, format="png", dpi=dpi)
    plt.close()
    return buffer.getvalue()


def palette_color(index: int, palette: Sequence[str] | None = None) -> str:
    colors = list(palette or DEFAULT_PALETTE)
    return colors[index % len(colors)]


def nice_step(span: float, target_ticks: int = 5) -> float:
    """Round span / target_ticks up to 1, 2 or 5 times a power of ten."""
    if not math.isfinite(span) or span <= 0.0:
        return 1.0
    raw = span / max(1, int(target_ticks))
    magnitude = 10.0 ** math.floor(math.log10(raw))
    residual = raw / magnitude
    for factor in NICE_FACTORS:
        if residual <= factor * (1.0 + 1e-9):
            return factor * magnitude
    return 10.0 * magnitude


def nice_ticks(vmin: float, vmax: float, target_ticks: int = 5) -> np.ndarray:
    if not (math.isfinite(vmin) and math.isfinite(vmax)):
        return np.array([], dtype=float)
    if vmax < vmin:
        vmin, vmax = vmax, vmin
    if vmax == vmin:
        vmax = vmin + (abs(vmin) or 1.0)
    step = nice_step(vmax - vmin, target_ticks)
    start = math.floor(vmin / step + 1e-9) * step
    stop = math.ceil(vmax / step - 1e-9) * step
    count = int(round((stop - start) / step)) + 1
    return np.round(start + step * np.arange(count), 12)


def figure_size(width_px: int, height_px: int, dpi: int) -> tuple[float, float]:
    return width_px / float(dpi), height_px / float(dpi)
