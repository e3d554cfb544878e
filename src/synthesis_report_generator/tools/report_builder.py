"""ContentAssembler: renders substage results and the figure catalog to one HTML document.

Output is a pure function of its inputs (the generation date is passed in),
so assembling the same results twice yields identical bytes. The table of
contents and the body read their ids from the same anchor table.
"""

from __future__ import annotations

import html
import re
from datetime import date
from pathlib import Path
from typing import Sequence
from urllib.parse import quote

from ..models import FigureMetadata, SubstageResult
from ..substages import FIGURES_ANCHOR, FIGURES_TITLE, SECTION_ANCHORS

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

DEFAULT_STRATEGY_LABEL = "Multi-substage progressive synthesis (A-G)"

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
_ITALIC_RE = re.compile(r"(?<![*\w])\*(?!\s)(.+?)(?<!\s)\*(?![*\w])")
_SECTION_ID_RE = re.compile(r'<section id="([^"]+)"')
_TOC_RE = re.compile(r'<ol class="toc-list">(.*?)</ol>', re.DOTALL)
_HREF_RE = re.compile(r'href="#([^"]+)"')


def load_css() -> str:
    return (TEMPLATES_DIR / "report.css").read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Markdown subset -> HTML
# ---------------------------------------------------------------------------


def _inline(text: str) -> str:
    text = _BOLD_RE.sub(r"<strong>\1</strong>", text)
    return _ITALIC_RE.sub(r"<em>\1</em>", text)


def markdown_to_html(text: str) -> str:
    """Convert the markdown subset the writers produce.

    Text is escaped first. Headings are demoted two levels (``#`` becomes
    ``<h3>``) so they nest under the section's ``<h2>``; blank lines split
    paragraphs and single newlines become ``<br>``.
    """
    escaped = html.escape(text.strip(), quote=False)
    parts: list[str] = []
    for block in re.split(r"\n\s*\n", escaped):
        lines: list[str] = []
        for line in block.splitlines():
            m = _HEADING_RE.match(line.strip())
            if m:
                if lines:
                    parts.append(f"<p>{'<br>'.join(lines)}</p>")
                    lines = []
                level = min(len(m.group(1)) + 2, 6)
                parts.append(f"<h{level}>{_inline(m.group(2))}</h{level}>")
            elif line.strip():
                lines.append(_inline(line.strip()))
        if lines:
            parts.append(f"<p>{'<br>'.join(lines)}</p>")
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Document parts
# ---------------------------------------------------------------------------


def _toc(results: Sequence[SubstageResult]) -> str:
    items = [
        f'<li><a href="#{SECTION_ANCHORS[r.substage]}">{html.escape(r.title)}</a></li>'
        for r in results
    ]
    items.append(f'<li><a href="#{FIGURES_ANCHOR}">{html.escape(FIGURES_TITLE)}</a></li>')
    return "\n".join(items)


def _referenced_figures(figures: Sequence[FigureMetadata]) -> str:
    if not figures:
        return ""
    links = ", ".join(
        f'<a href="#figure-{f.figure_number}">Figure {f.figure_number}</a>' for f in figures
    )
    return (
        '<div class="section-figures">\n'
        "<h4>Referenced Figures</h4>\n"
        f"<p>This section references and discusses: {links}</p>\n"
        "</div>"
    )


def _section(result: SubstageResult) -> str:
    anchor = SECTION_ANCHORS[result.substage]
    return f"""<section id="{anchor}" class="report-section">
<div class="section-header">
<h2 class="section-title">{html.escape(result.title)}</h2>
<div class="section-metadata">
<span class="word-count">{result.word_count:,} words</span>
<span class="token-usage">{result.token_usage:,} tokens</span>
<span class="generation-time">{result.generation_time_seconds}s generation</span>
</div>
</div>
<div class="section-content">
{markdown_to_html(result.content)}
{_referenced_figures(result.figures_referenced)}
</div>
</section>"""


def _figure(figure: FigureMetadata, figure_base_path: str) -> str:
    base = figure_base_path.rstrip("/")
    src = f"{base}/{quote(figure.filename)}" if base else quote(figure.filename)
    label = f"Figure {figure.figure_number}: {figure.title}"
    refs = ""
    if figure.cross_references:
        refs = (
            '<div class="cross-references"><strong>Cross-references:</strong> '
            f"{html.escape(', '.join(figure.cross_references))}</div>\n"
        )
    return f"""<div class="figure-container" id="figure-{figure.figure_number}">
<div class="figure-header">
<h3 class="figure-title">{html.escape(label)}</h3>
<div class="figure-metadata">
<span class="figure-category">{figure.category.value}</span>
<span class="figure-placement">{figure.placement.value}</span>
</div>
</div>
<div class="figure-content">
<img src="{html.escape(src)}" alt="{html.escape(label)}" class="figure-image">
</div>
<div class="figure-legend">
<p><strong>Figure {figure.figure_number}:</strong> {html.escape(figure.legend)}</p>
{refs}</div>
</div>"""


def assemble_report_html(
    title: str,
    results: Sequence[SubstageResult],
    catalog: Sequence[FigureMetadata],
    *,
    generated_on: date,
    figure_base_path: str = "figures",
    strategy_label: str = DEFAULT_STRATEGY_LABEL,
) -> str:
    """Render the complete report document."""
    total_words = sum(r.word_count for r in results)
    total_tokens = sum(r.token_usage for r in results)
    total_seconds = sum(r.generation_time_seconds for r in results)
    safe_title = html.escape(title)
    sections = "\n\n".join(_section(r) for r in results)
    figures = "\n\n".join(_figure(f, figure_base_path) for f in catalog)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{safe_title}: Comprehensive Analysis</title>
<style>
{load_css()}
</style>
</head>
<body>
<div class="report-container">
<div class="title-page">
<h1 class="report-title">{safe_title}</h1>
<h2 class="report-subtitle">A Comprehensive Multi-Stage Analysis</h2>
<div class="report-metadata">
<p><strong>Generation Date:</strong> {generated_on.isoformat()}</p>
<p><strong>Total Word Count:</strong> {total_words:,} words</p>
<p><strong>Total Figures:</strong> {len(catalog)}</p>
<p><strong>Generation Method:</strong> {html.escape(strategy_label)}</p>
</div>
</div>

<nav class="table-of-contents">
<h2>Table of Contents</h2>
<ol class="toc-list">
{_toc(results)}
</ol>
</nav>

{sections}

<section id="{FIGURES_ANCHOR}" class="figures-section">
<h2 class="section-title">{html.escape(FIGURES_TITLE)}</h2>
<p class="figures-intro">The following {len(catalog)} figures support the analysis above. Each carries a legend and cross-references to the relevant sections.</p>
{figures}
</section>

<footer class="report-footer">
<p>Total Generation Time: {total_seconds:,} seconds</p>
<p>Total Token Usage: {total_tokens:,} tokens</p>
</footer>
</div>
</body>
</html>
"""


# ---------------------------------------------------------------------------
# Verification helpers
# ---------------------------------------------------------------------------


def section_anchors(document_html: str) -> list[str]:
    """Ids of every ``<section>`` in document order."""
    return _SECTION_ID_RE.findall(document_html)


def toc_anchors(document_html: str) -> list[str]:
    """Fragment targets of the table of contents, in order."""
    m = _TOC_RE.search(document_html)
    return _HREF_RE.findall(m.group(1)) if m else []
