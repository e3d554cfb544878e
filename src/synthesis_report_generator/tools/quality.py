"""QualityScorer: completeness ratios against fixed targets.

The metrics are informational. They measure how much of the expected
volume was produced, not whether the writing is any good.
"""

from __future__ import annotations

import re
from typing import Sequence

from ..models import QualityMetrics, QualityTargets, SubstageId, SubstageResult

_REFERENCE_RE = re.compile(r"^\d+\.\s+.+$", re.MULTILINE)


def extract_references(results: Sequence[SubstageResult], limit: int = 50) -> list[str]:
    """Numbered reference lines from the bibliography substage, at most *limit*."""
    for result in results:
        if result.substage == SubstageId.BIBLIOGRAPHY:
            refs = [m.group(0).strip() for m in _REFERENCE_RE.finditer(result.content)]
            return refs[:limit]
    return []


def _ratio(actual: float, target: float) -> float:
    if target <= 0:
        return 100.0
    return max(0.0, min(100.0, actual / target * 100.0))


def score_report(
    results: Sequence[SubstageResult],
    figure_count: int,
    reference_count: int,
    targets: QualityTargets | None = None,
) -> QualityMetrics:
    """Score a finished run. Every metric is clamped to [0, 100]."""
    targets = targets or QualityTargets()
    total_words = sum(r.word_count for r in results)
    return QualityMetrics(
        academic_rigor=_ratio(total_words, targets.words),
        content_depth=_ratio(len(results), targets.substages),
        figure_integration=_ratio(figure_count, targets.figures),
        reference_quality=_ratio(reference_count, targets.references),
    )
