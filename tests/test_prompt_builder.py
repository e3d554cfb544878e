"""Tests for tools/prompt_builder.py and the substage plan."""

from __future__ import annotations

import pytest

from synthesis_report_generator.models import (
    ChunkSpec,
    GenerationMode,
    PriorSubstageSlice,
    ProjectConfig,
    SubstageId,
    SubstageResult,
    UpstreamSlice,
)
from synthesis_report_generator.substages import (
    DEFAULT_SUBSTAGES,
    SECTION_ANCHORS,
    default_substages,
    validate_substage_order,
)
from synthesis_report_generator.tools.figure_catalog import build_figure_catalog, default_figure_filenames
from synthesis_report_generator.tools.prompt_builder import (
    CONTINUATION_LABEL,
    ChunkedPromptBuilder,
    SubstageContext,
)


@pytest.fixture
def ctx(research_context, stage_results):
    return SubstageContext(
        research_context=research_context,
        parameters={"confidence_threshold": 0.7},
        upstream_results=stage_results,
        figures=build_figure_catalog(default_figure_filenames()),
    )


def _spec(substage: SubstageId):
    return next(s for s in default_substages() if s.substage == substage)


class TestSubstagePlan:
    def test_default_plan_is_valid(self):
        validate_substage_order(default_substages())

    def test_milestones(self):
        assert [s.progress_milestone for s in DEFAULT_SUBSTAGES] == [20, 35, 50, 65, 80, 90, 95]

    def test_anchors_are_unique(self):
        assert len(set(SECTION_ANCHORS.values())) == 7

    def test_out_of_order_rejected(self):
        specs = default_substages()
        specs[0], specs[1] = specs[1], specs[0]
        with pytest.raises(ValueError):
            validate_substage_order(specs)

    def test_forward_dependency_rejected(self):
        specs = default_substages()
        bad = ChunkSpec(
            heading="H", min_words=1, max_words=2,
            prior_substages=[PriorSubstageSlice(substage=SubstageId.FINDINGS, max_chars=100)],
        )
        specs[0] = specs[0].model_copy(update={"chunks": [bad]})
        with pytest.raises(ValueError, match="not earlier"):
            validate_substage_order(specs)


class TestBuildRequests:
    def test_default_chunk_counts(self, config, ctx):
        builder = ChunkedPromptBuilder(config)
        counts = [len(builder.build_requests(s, ctx)) for s in default_substages()]
        assert counts == [4, 5, 5, 6, 6, 1, 1]

    def test_indices_and_counts(self, config, ctx):
        requests = ChunkedPromptBuilder(config).build_requests(_spec(SubstageId.SUMMARY), ctx)
        assert [r.chunk_index for r in requests] == [0, 1, 2, 3]
        assert {r.chunk_count for r in requests} == {4}
        assert {r.substage for r in requests} == {SubstageId.SUMMARY}

    def test_modes_follow_chunk_specs(self, config, ctx):
        requests = ChunkedPromptBuilder(config).build_requests(_spec(SubstageId.BACKGROUND), ctx)
        assert [r.mode for r in requests[:3]] == [GenerationMode.THINKING_SEARCH] * 3
        assert requests[3].mode == GenerationMode.THINKING_STRUCTURED

    def test_stateless(self, config, ctx):
        builder = ChunkedPromptBuilder(config)
        spec = _spec(SubstageId.FINDINGS)
        assert builder.build_requests(spec, ctx) == builder.build_requests(spec, ctx)

    def test_units_clamped_to_ceiling(self, ctx):
        builder = ChunkedPromptBuilder(ProjectConfig(max_output_ceiling=5000))
        for spec in default_substages():
            for r in builder.build_requests(spec, ctx):
                assert r.template.max_output_units <= 5000

    def test_oversized_chunk_is_split(self, ctx):
        config = ProjectConfig(max_output_ceiling=1000, tokens_per_word=1.5)
        spec = _spec(SubstageId.SUMMARY).model_copy(update={"chunks": [
            ChunkSpec(heading="Long", min_words=900, max_words=1000, max_output_units=8000),
        ]})
        requests = ChunkedPromptBuilder(config).build_requests(spec, ctx)
        assert len(requests) == 2
        assert "part 1 of 2" in requests[0].template.instruction_sections[0]
        assert "part 2 of 2" in requests[1].template.instruction_sections[0]
        assert "(450-500 words)" in requests[0].template.instruction_sections[0]
        assert all(r.template.max_output_units == 1000 for r in requests)

    def test_single_mode_one_request_per_substage(self, ctx):
        builder = ChunkedPromptBuilder(ProjectConfig(chunking="single"))
        for spec in default_substages():
            requests = builder.build_requests(spec, ctx)
            assert len(requests) == 1
        merged = builder.build_requests(_spec(SubstageId.BACKGROUND), ctx)[0]
        assert merged.mode == GenerationMode.THINKING_SEARCH
        assert "Framework Rationale" in merged.template.instruction_sections[1]


class TestContextSlots:
    def test_slot_truncated_to_slice(self, config, research_context):
        ctx = SubstageContext(research_context=research_context, upstream_results=["x" * 5000] * 8)
        requests = ChunkedPromptBuilder(config).build_requests(_spec(SubstageId.SUMMARY), ctx)
        slot = next(s for s in requests[0].template.context_slots if s.label == "Key Research Context")
        assert len(slot.text) == 800

    def test_total_context_bounded(self, research_context):
        config = ProjectConfig(context_char_budget=300)
        ctx = SubstageContext(research_context=research_context, upstream_results=["y" * 5000] * 8)
        for spec in default_substages():
            for r in ChunkedPromptBuilder(config).build_requests(spec, ctx):
                assert sum(len(s.text) for s in r.template.context_slots) <= 300

    def test_fallback_when_upstream_missing(self, config, research_context):
        ctx = SubstageContext(research_context=research_context)
        requests = ChunkedPromptBuilder(config).build_requests(_spec(SubstageId.SUMMARY), ctx)
        texts = [s.text for s in requests[0].template.context_slots]
        assert "Comprehensive systematic analysis of the research topic" in texts

    def test_multi_stage_slice_joined(self, config, research_context):
        spec = _spec(SubstageId.SUMMARY).model_copy(update={"chunks": [
            ChunkSpec(heading="H", min_words=1, max_words=2,
                      upstream=[UpstreamSlice(start=1, stop=3, max_chars=100, label="Joined")]),
        ]})
        ctx = SubstageContext(research_context=research_context, upstream_results=["a", "b", "c", "d"])
        slot = ChunkedPromptBuilder(config).build_requests(spec, ctx)[0].template.context_slots[0]
        assert (slot.label, slot.text) == ("Joined", "b c")

    def test_prior_substage_prefix(self, config, ctx):
        previous = SubstageResult(substage=SubstageId.SUMMARY, title="A", content="S" * 2000)
        ctx = ctx.model_copy(update={"previous_results": [previous]})
        requests = ChunkedPromptBuilder(config).build_requests(_spec(SubstageId.BACKGROUND), ctx)
        slot = next(s for s in requests[4].template.context_slots if s.label == "Research Framework Context")
        assert slot.text == "S" * 600

    def test_missing_prior_substage_skipped(self, config, ctx):
        requests = ChunkedPromptBuilder(config).build_requests(_spec(SubstageId.CLOSURE), ctx)
        labels = [s.label for s in requests[0].template.context_slots]
        assert "Abstract findings" not in labels
        assert "Research Objectives" in labels

    def test_parameters_embedded(self, config, ctx):
        requests = ChunkedPromptBuilder(config).build_requests(_spec(SubstageId.METHODS), ctx)
        slot = requests[0].template.context_slots[0]
        assert slot.label == "Research Parameters"
        assert '"confidence_threshold": 0.7' in slot.text

    def test_continuation_fits_inside_budget(self, research_context):
        config = ProjectConfig(context_char_budget=1000, continuation_chars=600)
        ctx = SubstageContext(research_context=research_context, upstream_results=["y" * 5000] * 8)
        builder = ChunkedPromptBuilder(config)
        for spec in default_substages():
            for r in builder.build_requests(spec, ctx):
                used = sum(len(s.text) for s in r.template.context_slots)
                _, context = builder.render(r, ["z" * 2000])
                if r.chunk_index == 0:
                    assert CONTINUATION_LABEL not in context
                    continue
                tail = context.split(f"{CONTINUATION_LABEL}:\n", 1)[1]
                assert tail == "z" * 600
                assert used + len(tail) <= 1000


class TestFigureInstructions:
    def test_results_chunks_get_figure_slices(self, config, ctx):
        requests = ChunkedPromptBuilder(config).build_requests(_spec(SubstageId.FINDINGS), ctx)
        second = "\n".join(requests[1].template.instruction_sections)
        assert "Figure 5:" in second and "Figure 7:" in second
        assert "Figure 8:" not in second
        last = "\n".join(requests[5].template.instruction_sections)
        assert "Figure 17:" in last and "Figure 19:" in last
        assert "Figure 5:" not in last

    def test_no_figures_without_flag(self, config, ctx):
        requests = ChunkedPromptBuilder(config).build_requests(_spec(SubstageId.FINDINGS), ctx)
        assert "Figure" not in "\n".join(requests[0].template.instruction_sections)

    def test_summary_lists_no_figures(self, config, ctx):
        for r in ChunkedPromptBuilder(config).build_requests(_spec(SubstageId.SUMMARY), ctx):
            assert "Integrate and discuss" not in "\n".join(r.template.instruction_sections)


class TestRender:
    def test_first_chunk_has_no_continuation(self, config, ctx):
        builder = ChunkedPromptBuilder(config)
        request = builder.build_requests(_spec(SubstageId.SUMMARY), ctx)[0]
        prompt, context = builder.render(request, [])
        assert prompt.startswith('Generate the "Background" part')
        assert CONTINUATION_LABEL not in context

    def test_later_chunk_carries_tail(self, config, ctx):
        builder = ChunkedPromptBuilder(config)
        request = builder.build_requests(_spec(SubstageId.SUMMARY), ctx)[1]
        previous = "a" * 1000 + "TAIL"
        _, context = builder.render(request, [previous])
        assert context.endswith(f"{CONTINUATION_LABEL}:\n" + previous[-600:])
