"""Report persistence: bundle building and the storage adapter contract.

Persisting is best-effort. Adapters raise ``StorageError``; the pipeline
turns that, or any other failure while storing, into a warning on an
otherwise successful outcome.
"""

from __future__ import annotations

import json
import logging
import mimetypes
import re
import time
import uuid
from pathlib import Path
from typing import Any, Protocol, Sequence

from ..errors import FigureNotFound, StorageError
from ..models import ComprehensiveReport, FigureFile, ReportBundle, ResearchContext
from ..substages import SECTION_ANCHORS
from .figure_catalog import FigureSource

logger = logging.getLogger(__name__)

_TABLE_ROW_RE = re.compile(r"\|.*\|")
_STAT_RE = re.compile(r"(\d+\.?\d*)[%\s]*\([^)]*\)")
_P_VALUE_RE = re.compile(r"p\s*[<>=]\s*0\.\d+", re.IGNORECASE)


def new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def new_analysis_id() -> str:
    return f"analysis_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


# ---------------------------------------------------------------------------
# Extraction from upstream stage results
# ---------------------------------------------------------------------------


def extract_table_data(stage_results: Sequence[str], *, preview_chars: int = 1000) -> list[dict[str, Any]]:
    """Pipe-delimited rows per stage, first five only."""
    return [
        {
            "stage": index + 1,
            "content": text[:preview_chars],
            "extracted_tables": _TABLE_ROW_RE.findall(text)[:5],
        }
        for index, text in enumerate(stage_results)
    ]


def extract_chart_data(stage_results: Sequence[str]) -> list[dict[str, Any]]:
    """Numbers with a parenthetical (CIs, counts) and p-values per stage."""
    return [
        {
            "stage": index + 1,
            "statistical_data": [m.group(0) for m in _STAT_RE.finditer(text)][:10],
            "p_values": _P_VALUE_RE.findall(text)[:5],
        }
        for index, text in enumerate(stage_results)
    ]


def collect_figure_files(report: ComprehensiveReport, source: FigureSource | None) -> list[FigureFile]:
    """Fetch bytes for every cataloged figure; missing or unreadable ones are logged and skipped."""
    if source is None:
        return []
    files: list[FigureFile] = []
    for figure in report.figure_catalog:
        try:
            content = source.fetch(figure.filename)
        except FigureNotFound:
            logger.warning("Figure not found, not stored: %s", figure.filename)
            continue
        except OSError as e:
            logger.warning("Figure unreadable, not stored: %s (%s)", figure.filename, e)
            continue
        media_type = mimetypes.guess_type(figure.filename)[0] or "image/png"
        files.append(FigureFile(filename=figure.filename, content=content, media_type=media_type))
    logger.info("Collected %d/%d figure files", len(files), len(report.figure_catalog))
    return files


def build_report_bundle(
    report: ComprehensiveReport,
    research_context: ResearchContext,
    parameters: dict[str, Any],
    upstream_results: Sequence[str],
    *,
    figure_source: FigureSource | None = None,
    model_names: dict[str, str] | None = None,
) -> ReportBundle:
    """Collect everything a storage adapter persists for *report*."""
    textual = {anchor: "" for anchor in SECTION_ANCHORS.values()}
    for result in report.substage_results:
        textual[SECTION_ANCHORS[result.substage]] = result.content
    return ReportBundle(
        research_context=research_context,
        parameters=parameters,
        upstream_results=list(upstream_results),
        document_html=report.document_html,
        textual_content=textual,
        analysis_data={
            "substage_results": [r.model_dump(mode="json") for r in report.substage_results],
            "figure_catalog": [f.model_dump(mode="json") for f in report.figure_catalog],
            "quality_metrics": report.quality_metrics.model_dump(mode="json"),
        },
        table_data=extract_table_data(upstream_results),
        chart_data=extract_chart_data(upstream_results),
        figure_files=collect_figure_files(report, figure_source),
        metadata={
            "total_tokens_used": report.total_token_usage,
            "generation_time_seconds": report.total_generation_time_seconds,
            "total_word_count": report.total_word_count,
            "reference_count": len(report.references),
            "model_versions": dict(model_names or {}),
        },
    )


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


class StorageAdapter(Protocol):
    """Persists a finished report and returns its analysis id."""

    def persist(self, session_id: str, title: str, bundle: ReportBundle) -> str: ...


class LocalStorageAdapter:
    """Writes each analysis to ``<root>/<analysis_id>/``."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def persist(self, session_id: str, title: str, bundle: ReportBundle) -> str:
        analysis_id = new_analysis_id()
        target = self.root / analysis_id
        record = {
            "id": analysis_id,
            "session_id": session_id,
            "title": title,
            "description": f"Comprehensive analysis: {bundle.research_context.topic}",
            **bundle.model_dump(mode="json", exclude={"document_html", "analysis_data", "figure_files"}),
            "figure_files": [f"figures/{f.filename}" for f in bundle.figure_files],
            "content_length": len(bundle.document_html),
            "figure_count": len(bundle.figure_files),
        }
        try:
            (target / "figures").mkdir(parents=True, exist_ok=True)
            (target / "report.html").write_text(bundle.document_html, encoding="utf-8")
            (target / "report.json").write_text(json.dumps(record, indent=2), encoding="utf-8")
            (target / "analysis.json").write_text(
                json.dumps(bundle.analysis_data, indent=2), encoding="utf-8",
            )
            for figure in bundle.figure_files:
                (target / "figures" / figure.filename).write_bytes(figure.content)
        except OSError as e:
            raise StorageError(f"Could not write analysis {analysis_id} to {target}: {e}") from e
        logger.info("Stored analysis %s (%s) at %s", analysis_id, title, target)
        return analysis_id
