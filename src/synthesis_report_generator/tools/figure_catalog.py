"""Deterministic figure catalog: numbering, classification, legends, cross-refs.

Classification is positional, not content-based. A figure's category and
placement depend only on its index in the input list and its filename, so
the same list always yields the same catalog.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, Sequence

from ..errors import FigureNotFound
from ..models import FigureCategory, FigureMetadata, FigurePlacement

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Classification bands (0-based index, inclusive upper bound)
# ---------------------------------------------------------------------------

_BANDS: list[tuple[int | None, FigureCategory, FigurePlacement, str, int, str]] = [
    # (max_index, category, placement, title prefix, title offset, description)
    (
        3, FigureCategory.OVERVIEW, FigurePlacement.METHODOLOGY,
        "Research Framework Overview", 0,
        "Systematic approach to data collection and initial analysis phases",
    ),
    (
        8, FigureCategory.STATISTICAL, FigurePlacement.RESULTS,
        "Statistical Analysis Results", 4,
        "Detailed statistical analysis of the principal measurements and their correlations",
    ),
    (
        14, FigureCategory.NETWORK, FigurePlacement.RESULTS,
        "Network Analysis Visualization", 8,
        "Graph-based analysis of relationships between measured features and outcomes",
    ),
    (
        18, FigureCategory.TEMPORAL, FigurePlacement.RESULTS,
        "Temporal Progression Analysis", 14,
        "Time-series analysis of how the studied effects progress",
    ),
    (
        None, FigureCategory.COMPARISON, FigurePlacement.DISCUSSION,
        "Comparative Analysis", 18,
        "Cross-study validation and meta-analytical synthesis of findings",
    ),
]

_SENTINEL_TITLE = "Comprehensive Evidence Analysis Framework"
_SENTINEL_DESCRIPTION = (
    "Overview of evidence collection and analysis methodology across all research dimensions"
)

_CATEGORY_LEGENDS: dict[FigureCategory, str] = {
    FigureCategory.OVERVIEW: (
        "This overview visualization demonstrates the systematic approach to evidence "
        "collection and analysis framework implementation, showing the comprehensive "
        "scope of the research methodology."
    ),
    FigureCategory.STATISTICAL: (
        "Statistical analysis visualization presenting quantitative findings with "
        "confidence intervals, p-values, and effect size calculations. All analyses "
        "include appropriate power calculations and multiple testing corrections."
    ),
    FigureCategory.NETWORK: (
        "Network-based analysis visualization showing graph-theoretical relationships "
        "and connectivity patterns. Node sizes represent significance levels, edge "
        "weights indicate correlation strengths, and clustering indicates functional "
        "relationships."
    ),
    FigureCategory.TEMPORAL: (
        "Temporal progression analysis showing time-series patterns and evolutionary "
        "dynamics. Statistical modeling includes trend analysis, change point detection, "
        "and progression rate calculations."
    ),
    FigureCategory.COMPARISON: (
        "Comparative analysis visualization enabling cross-study validation and "
        "meta-analytical synthesis. Includes heterogeneity assessment, sensitivity "
        "analysis, and subgroup comparisons."
    ),
}

_STATISTICAL_NOTE = (
    " Statistical significance is indicated by color coding (p<0.001: red, p<0.01: "
    "orange, p<0.05: yellow). Confidence intervals are shown as error bars or shaded regions."
)
_GENERIC_NOTE = (
    " All quantitative elements include appropriate statistical validation and significance testing."
)
_PROVENANCE = (
    " Generated through multi-stage framework analysis ensuring methodological rigor "
    "and reproducibility."
)

_CATEGORY_SECTIONS: dict[FigureCategory, tuple[str, ...]] = {
    FigureCategory.OVERVIEW: ("Introduction Section 1.4", "Methodology Section 2.1"),
    FigureCategory.STATISTICAL: ("Results Section 3.2", "Results Section 3.3"),
    FigureCategory.NETWORK: ("Results Section 3.4", "Discussion Section 4.2"),
    FigureCategory.TEMPORAL: ("Results Section 3.5", "Discussion Section 4.3"),
    FigureCategory.COMPARISON: ("Discussion Section 4.1", "Discussion Section 4.4"),
}


def default_figure_filenames() -> list[str]:
    """The standard 22-figure list: one evidence overview plus 21 plot exports."""
    return [
        "Evidence_Analysis__Evidence__Scope_Hypothesis_3.png",
        "newplot.png",
        *(f"newplot ({i}).png" for i in range(1, 21)),
    ]


def classify_figure(
    index: int,
    filename: str,
    *,
    overview_sentinel: str = "Evidence_Analysis",
) -> tuple[FigureCategory, FigurePlacement, str, str]:
    """Return ``(category, placement, title, description)`` for one figure."""
    figure_number = index + 1
    if overview_sentinel and overview_sentinel in filename:
        return FigureCategory.OVERVIEW, FigurePlacement.INTRODUCTION, _SENTINEL_TITLE, _SENTINEL_DESCRIPTION

    for max_index, category, placement, prefix, offset, description in _BANDS:
        if max_index is None or index <= max_index:
            return category, placement, f"{prefix} {figure_number - offset}", description

    raise AssertionError("unreachable: the last band is open-ended")


def build_legend(category: FigureCategory, description: str) -> str:
    """Concatenate the description with the category's legend template."""
    note = _STATISTICAL_NOTE if category == FigureCategory.STATISTICAL else _GENERIC_NOTE
    return f"{description}. {_CATEGORY_LEGENDS[category]}{note}{_PROVENANCE}"


def build_cross_references(figure_number: int, category: FigureCategory, total: int) -> list[str]:
    """Category section labels, then the neighbouring figures that exist."""
    refs = list(_CATEGORY_SECTIONS[category])
    if figure_number > 1:
        refs.append(f"Figure {figure_number - 1}")
    if figure_number < total:
        refs.append(f"Figure {figure_number + 1}")
    return refs


def build_figure_catalog(
    filenames: Sequence[str],
    *,
    overview_sentinel: str = "Evidence_Analysis",
) -> list[FigureMetadata]:
    """Build the ordered catalog. Figure numbers are 1..N in input order."""
    total = len(filenames)
    catalog: list[FigureMetadata] = []
    for index, filename in enumerate(filenames):
        category, placement, title, description = classify_figure(
            index, filename, overview_sentinel=overview_sentinel,
        )
        figure_number = index + 1
        catalog.append(FigureMetadata(
            filename=filename,
            figure_number=figure_number,
            title=title,
            description=description,
            category=category,
            placement=placement,
            legend=build_legend(category, description),
            cross_references=build_cross_references(figure_number, category, total),
        ))
    logger.info("Cataloged %d figures", len(catalog))
    return catalog


def figures_for_placement(
    catalog: Sequence[FigureMetadata],
    placement: FigurePlacement | None,
) -> list[FigureMetadata]:
    """Figures whose placement matches, in catalog order."""
    if placement is None:
        return []
    return [f for f in catalog if f.placement == placement]


# ---------------------------------------------------------------------------
# Figure sources
# ---------------------------------------------------------------------------


class FigureSource(Protocol):
    """Retrieves raw image bytes by filename."""

    def fetch(self, filename: str) -> bytes: ...


class DirectoryFigureSource:
    """Looks a figure up in an explicit, ordered list of directories."""

    def __init__(self, *roots: str | Path) -> None:
        self.roots = [Path(r) for r in roots]

    def fetch(self, filename: str) -> bytes:
        # Reject path components so a filename cannot escape the roots.
        if Path(filename).name != filename:
            raise FigureNotFound(filename)
        for root in self.roots:
            candidate = root / filename
            if candidate.is_file():
                return candidate.read_bytes()
        raise FigureNotFound(filename)
