"""Tests for models.py — Pydantic model validation."""

from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError

from synthesis_report_generator.errors import (
    ClassificationError,
    FigureNotFound,
    ServiceError,
    SynthesisError,
    TruncatedOutputError,
)
from synthesis_report_generator.models import (
    ChunkSpec,
    ComprehensiveReport,
    FigureCategory,
    FigureMetadata,
    FigurePlacement,
    PipelineOutcome,
    ProjectConfig,
    QualityMetrics,
    ResearchContext,
    SubstageId,
    SubstageResult,
    SubstageSpec,
)


class TestFigureMetadata:
    def test_number_must_be_positive(self):
        with pytest.raises(ValidationError):
            FigureMetadata(
                filename="a.png", figure_number=0, title="t",
                category=FigureCategory.OVERVIEW, placement=FigurePlacement.METHODOLOGY,
            )

    def test_frozen(self):
        f = FigureMetadata(
            filename="a.png", figure_number=1, title="t",
            category=FigureCategory.OVERVIEW, placement=FigurePlacement.METHODOLOGY,
        )
        with pytest.raises(ValidationError):
            f.figure_number = 2


class TestSubstageModels:
    def test_substage_order(self):
        assert [s.value for s in SubstageId] == list("ABCDEFG")

    def test_spec_needs_a_chunk(self):
        with pytest.raises(ValidationError):
            SubstageSpec(substage=SubstageId.SUMMARY, title="A", anchor="abstract",
                         progress_milestone=20, chunks=[])

    def test_chunk_defaults(self):
        c = ChunkSpec(heading="H", min_words=1, max_words=2)
        assert c.upstream == [] and c.prior_substages == []
        assert c.figure_slice is None

    def test_result_roundtrip_json(self):
        r = SubstageResult(substage=SubstageId.CLOSURE, title="F", content="x y", word_count=2)
        assert SubstageResult.model_validate_json(r.model_dump_json()) == r


class TestQualityMetrics:
    def test_bounds(self):
        with pytest.raises(ValidationError):
            QualityMetrics(academic_rigor=100.1)
        with pytest.raises(ValidationError):
            QualityMetrics(reference_quality=-1)


class TestPipelineOutcome:
    def _report(self):
        return ComprehensiveReport(
            title="T", substage_results=[], figure_catalog=[], total_word_count=0,
            total_token_usage=0, total_generation_time_seconds=0, document_html="",
            quality_metrics=QualityMetrics(), generated_on=date(2026, 1, 1),
        )

    def test_ok(self):
        assert PipelineOutcome(report=self._report()).ok

    def test_warning(self):
        assert not PipelineOutcome(report=self._report(), persist_warning="down").ok


class TestProjectConfig:
    def test_defaults(self):
        c = ProjectConfig()
        assert c.chunking == "chunked"
        assert c.on_truncation == "fail"
        assert c.quality.words == 12000
        assert c.reference_limit == 50

    def test_research_context_objectives_default(self):
        assert ResearchContext(topic="t").objectives == []


class TestErrors:
    def test_truncation_is_service_error(self):
        e = TruncatedOutputError("cut", partial_text="abc")
        assert isinstance(e, ServiceError)
        assert isinstance(e, SynthesisError)
        assert e.partial_text == "abc"

    def test_lookup_and_taxonomy(self):
        assert issubclass(FigureNotFound, LookupError)
        assert issubclass(ClassificationError, SynthesisError)
