"""Tests for tools/figure_catalog.py — classification, legends, figure sources."""

from __future__ import annotations

import pytest

from synthesis_report_generator.errors import FigureNotFound
from synthesis_report_generator.models import FigureCategory, FigurePlacement
from synthesis_report_generator.tools.figure_catalog import (
    DirectoryFigureSource,
    build_cross_references,
    build_figure_catalog,
    classify_figure,
    default_figure_filenames,
    figures_for_placement,
)


@pytest.fixture
def catalog():
    return build_figure_catalog(default_figure_filenames())


class TestNumbering:
    def test_default_list_has_22_figures(self):
        assert len(default_figure_filenames()) == 22

    def test_numbers_are_contiguous(self, catalog):
        assert [f.figure_number for f in catalog] == list(range(1, 23))

    def test_order_follows_input(self, catalog):
        assert [f.filename for f in catalog] == default_figure_filenames()

    def test_empty_input(self):
        assert build_figure_catalog([]) == []


class TestClassification:
    def test_sentinel_is_introduction_overview(self, catalog):
        first = catalog[0]
        assert first.category == FigureCategory.OVERVIEW
        assert first.placement == FigurePlacement.INTRODUCTION
        assert first.title == "Comprehensive Evidence Analysis Framework"

    def test_sentinel_anywhere_wins(self):
        category, placement, _, _ = classify_figure(17, "x_Evidence_Analysis_y.png")
        assert (category, placement) == (FigureCategory.OVERVIEW, FigurePlacement.INTRODUCTION)

    def test_custom_sentinel(self):
        category, placement, _, _ = classify_figure(10, "scope.png", overview_sentinel="scope")
        assert placement == FigurePlacement.INTRODUCTION
        category, placement, _, _ = classify_figure(10, "Evidence_Analysis.png", overview_sentinel="scope")
        assert category == FigureCategory.NETWORK

    @pytest.mark.parametrize("index,category,placement,title", [
        (1, FigureCategory.OVERVIEW, FigurePlacement.METHODOLOGY, "Research Framework Overview 2"),
        (3, FigureCategory.OVERVIEW, FigurePlacement.METHODOLOGY, "Research Framework Overview 4"),
        (4, FigureCategory.STATISTICAL, FigurePlacement.RESULTS, "Statistical Analysis Results 1"),
        (8, FigureCategory.STATISTICAL, FigurePlacement.RESULTS, "Statistical Analysis Results 5"),
        (9, FigureCategory.NETWORK, FigurePlacement.RESULTS, "Network Analysis Visualization 2"),
        (14, FigureCategory.NETWORK, FigurePlacement.RESULTS, "Network Analysis Visualization 7"),
        (15, FigureCategory.TEMPORAL, FigurePlacement.RESULTS, "Temporal Progression Analysis 2"),
        (18, FigureCategory.TEMPORAL, FigurePlacement.RESULTS, "Temporal Progression Analysis 5"),
        (19, FigureCategory.COMPARISON, FigurePlacement.DISCUSSION, "Comparative Analysis 2"),
        (40, FigureCategory.COMPARISON, FigurePlacement.DISCUSSION, "Comparative Analysis 23"),
    ])
    def test_bands(self, index, category, placement, title):
        got = classify_figure(index, "plot.png")
        assert got[:3] == (category, placement, title)

    def test_placement_counts_for_default_list(self, catalog):
        counts = {p: len(figures_for_placement(catalog, p)) for p in FigurePlacement}
        assert counts == {
            FigurePlacement.INTRODUCTION: 1,
            FigurePlacement.METHODOLOGY: 3,
            FigurePlacement.RESULTS: 15,
            FigurePlacement.DISCUSSION: 3,
            FigurePlacement.APPENDIX: 0,
        }

    def test_pure(self):
        names = default_figure_filenames()
        assert build_figure_catalog(names) == build_figure_catalog(list(names))


class TestLegendsAndCrossReferences:
    def test_statistical_legend_has_significance_note(self, catalog):
        legend = catalog[4].legend
        assert legend.startswith(catalog[4].description + ".")
        assert "p<0.001" in legend

    def test_other_legends_have_generic_note(self, catalog):
        assert "appropriate statistical validation" in catalog[10].legend
        assert "p<0.001" not in catalog[10].legend

    def test_first_and_last_neighbours(self, catalog):
        assert "Figure 2" in catalog[0].cross_references
        assert not any(r == "Figure 0" for r in catalog[0].cross_references)
        assert "Figure 21" in catalog[-1].cross_references
        assert "Figure 23" not in catalog[-1].cross_references

    def test_section_labels_first(self):
        refs = build_cross_references(5, FigureCategory.STATISTICAL, 22)
        assert refs == ["Results Section 3.2", "Results Section 3.3", "Figure 4", "Figure 6"]

    def test_single_figure_has_no_neighbours(self):
        refs = build_cross_references(1, FigureCategory.OVERVIEW, 1)
        assert refs == ["Introduction Section 1.4", "Methodology Section 2.1"]


class TestFiguresForPlacement:
    def test_none_placement_is_empty(self, catalog):
        assert figures_for_placement(catalog, None) == []

    def test_keeps_catalog_order(self, catalog):
        numbers = [f.figure_number for f in figures_for_placement(catalog, FigurePlacement.RESULTS)]
        assert numbers == sorted(numbers)
        assert numbers[0] == 5


class TestDirectoryFigureSource:
    def test_probes_roots_in_order(self, tmp_path):
        first, second = tmp_path / "a", tmp_path / "b"
        first.mkdir()
        second.mkdir()
        (second / "newplot.png").write_bytes(b"second")
        source = DirectoryFigureSource(first, second)
        assert source.fetch("newplot.png") == b"second"
        (first / "newplot.png").write_bytes(b"first")
        assert source.fetch("newplot.png") == b"first"

    def test_missing_raises(self, tmp_path):
        with pytest.raises(FigureNotFound):
            DirectoryFigureSource(tmp_path).fetch("absent.png")

    def test_rejects_paths(self, tmp_path):
        (tmp_path / "secret.png").write_bytes(b"x")
        source = DirectoryFigureSource(tmp_path / "figures")
        with pytest.raises(FigureNotFound):
            source.fetch("../secret.png")
