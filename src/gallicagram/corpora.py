from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from gallicagram.models import Resolution

ContextKind = Literal["gallica", "lemonde", "persee", "rap"]


@dataclass(frozen=True)
class CorpusSpec:
    code: str
    label: str
    first_year: int
    last_year: int
    finest_resolution: Resolution = Resolution.YEAR
    endpoint: str = "query"
    sends_corpus_param: bool = True
    gallica_filter: dict[str, str] = field(default_factory=dict)
    context_kind: ContextKind | None = None

    @property
    def display_label(self) -> str:
        return f"{self.label} ({self.first_year}-{self.last_year})"

    @property
    def supports_document_counts(self) -> bool:
        return self.context_kind == "gallica"


def _gallica_title(
    code: str,
    label: str,
    first: int,
    last: int,
    ark: str | None = None,
) -> CorpusSpec:
    corpus_filter = {"source": "periodical"}
    if ark:
        corpus_filter["code"] = ark
    return CorpusSpec(
        code=code,
        label=label,
        first_year=first,
        last_year=last,
        finest_resolution=Resolution.DAY,
        gallica_filter=corpus_filter,
        context_kind="gallica",
    )


_CATALOG: list[CorpusSpec] = [
    CorpusSpec("lemonde", "Le Monde", 1944, 2023, Resolution.DAY, context_kind="lemonde"),
    CorpusSpec(
        "presse",
        "Presse Gallica",
        1789,
        1950,
        Resolution.MONTH,
        gallica_filter={"source": "periodical"},
        context_kind="gallica",
    ),
    CorpusSpec(
        "livres",
        "Livres Gallica",
        1600,
        1940,
        Resolution.YEAR,
        gallica_filter={"source": "book"},
        context_kind="gallica",
    ),
    CorpusSpec(
        "persee",
        "Persée",
        1789,
        2023,
        Resolution.YEAR,
        endpoint="query_persee",
        sends_corpus_param=False,
        context_kind="persee",
    ),
    CorpusSpec("ddb", "Deutsches Zeitungsportal", 1780, 1950, Resolution.MONTH),
    CorpusSpec("american_stories", "American Stories", 1798, 1963, Resolution.YEAR),
    _gallica_title("paris", "Journal de Paris", 1777, 1827),
    _gallica_title("moniteur", "Moniteur Universel", 1789, 1869, "cb344019391"),
    _gallica_title("journal_des_debats", "Journal des Débats", 1789, 1944, "cb327986871"),
    _gallica_title("la_presse", "La Presse", 1836, 1869),
    _gallica_title("constitutionnel", "Le Constitutionnel", 1821, 1913),
    _gallica_title("figaro", "Le Figaro", 1854, 1952),
    _gallica_title("temps", "Le Temps", 1861, 1942),
    _gallica_title("petit_journal", "Le Petit Journal", 1863, 1942),
    _gallica_title("petit_parisien", "Le Petit Parisien", 1876, 1944),
    _gallica_title("huma", "L'Humanité", 1904, 1952),
    CorpusSpec("subtitles", "Sous-titres (FR)", 1935, 2020, Resolution.YEAR),
    CorpusSpec("subtitles_en", "Subtitles (EN)", 1930, 2020, Resolution.YEAR),
    CorpusSpec("rap", "Rap (Genius)", 1989, 2024, Resolution.YEAR, context_kind="rap"),
]

CORPORA: dict[str, CorpusSpec] = {spec.code: spec for spec in _CATALOG}


def get_corpus(code: str) -> CorpusSpec:
    try:
        return CORPORA[code]
    except KeyError:
        raise ValueError(f"Unknown corpus: {code}") from None


def corpus_label(code: str) -> str:
    spec = CORPORA.get(code)
    return spec.display_label if spec is not None else code


def list_corpora() -> list[dict[str, str]]:
    return [{"code": spec.code, "label": spec.display_label} for spec in _CATALOG]


def resolve_resolution(
    corpus: CorpusSpec,
    requested: Resolution,
    start_year: int,
    end_year: int,
    max_day_span_years: int = 20,
) -> Resolution:
    """Pick the effective axis resolution for a corpus and a requested span."""
    effective = requested
    if effective is not Resolution.DECADE and effective.rank < corpus.finest_resolution.rank:
        effective = corpus.finest_resolution
    if effective is Resolution.DAY and (end_year - start_year + 1) > max_day_span_years:
        effective = Resolution.MONTH
    return effective


def fetch_resolution(resolution: Resolution) -> Resolution:
    """Resolution to request upstream; decades are aggregated from yearly rows."""
    return Resolution.YEAR if resolution is Resolution.DECADE else resolution
