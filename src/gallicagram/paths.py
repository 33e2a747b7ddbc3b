from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

ARTIFACT_STEM = "gallicagram"


@dataclass(frozen=True)
class OutputPaths:
    root: Path
    tables: Path
    figures: Path
    summary: Path

    def figure(self, plot_type: str, suffix: str = "png") -> Path:
        return self.figures / f"{ARTIFACT_STEM}_{plot_type}.{suffix.lstrip('.') or 'png'}"

    def table(self, fmt: str) -> Path:
        return self.tables / f"{ARTIFACT_STEM}.{fmt}"

    def summary_file(self) -> Path:
        return self.summary / f"{ARTIFACT_STEM}.json"


def build_output_paths(out_dir: Path) -> OutputPaths:
    """Create the output tree under ``out_dir``: tables, figures and summary."""
    paths = OutputPaths(
        root=out_dir,
        tables=out_dir / "tables",
        figures=out_dir / "figures",
        summary=out_dir / "summary",
    )
    for path in (paths.root, paths.tables, paths.figures, paths.summary):
        path.mkdir(parents=True, exist_ok=True)
    return paths
