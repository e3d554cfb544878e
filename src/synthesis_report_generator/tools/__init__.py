"""Deterministic tools for cataloging, prompting, assembly, scoring and storage."""

from .figure_catalog import build_figure_catalog, figures_for_placement
from .quality import extract_references, score_report
from .report_builder import assemble_report_html, section_anchors, toc_anchors

__all__ = [
    "assemble_report_html",
    "build_figure_catalog",
    "extract_references",
    "figures_for_placement",
    "score_report",
    "section_anchors",
    "toc_anchors",
]
