"""ChunkedPromptBuilder: turns a substage plan into bounded generation requests.

Templates stay structured (instruction sections plus labelled context slots)
until ``render`` is called at the service boundary. Every context slot is
clipped to its own limit and the whole context to the configured budget, so
a single request can never exceed the per-call output ceiling.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any

from pydantic import BaseModel, Field

from ..models import (
    ChunkSpec,
    ContextSlot,
    FigureMetadata,
    GenerationMode,
    GenerationRequest,
    ProjectConfig,
    PromptTemplate,
    ResearchContext,
    SubstageId,
    SubstageResult,
    SubstageSpec,
)
from .figure_catalog import figures_for_placement

logger = logging.getLogger(__name__)

CONTINUATION_LABEL = "Previous Part (continue seamlessly from here)"


class SubstageContext(BaseModel):
    """Everything one substage may read: upstream artifacts and earlier substages."""
    research_context: ResearchContext
    parameters: dict[str, Any] = Field(default_factory=dict)
    upstream_results: list[str] = Field(default_factory=list)
    previous_results: list[SubstageResult] = Field(default_factory=list)
    figures: list[FigureMetadata] = Field(default_factory=list, description="Full figure catalog")

    def previous(self, substage: SubstageId) -> SubstageResult | None:
        for result in self.previous_results:
            if result.substage == substage:
                return result
        return None


def _clip(text: str, max_chars: int) -> str:
    return text[:max_chars] if max_chars >= 0 else text


def _figure_lines(figures: list[FigureMetadata]) -> str:
    return "\n".join(f"- Figure {f.figure_number}: {f.title} - {f.description}" for f in figures)


class ChunkedPromptBuilder:
    """Builds the ordered request list of a substage. Holds no per-run state."""

    def __init__(self, config: ProjectConfig) -> None:
        self.config = config

    # -----------------------------------------------------------------------
    # Requests
    # -----------------------------------------------------------------------

    def build_requests(self, spec: SubstageSpec, ctx: SubstageContext) -> list[GenerationRequest]:
        """Return the requests for *spec*, in generation order."""
        figures = figures_for_placement(ctx.figures, spec.figure_placement)
        single = self.config.chunking == "single"
        chunks = [self._merge_chunks(spec)] if single else list(spec.chunks)

        planned: list[tuple[ChunkSpec, int, int]] = []
        for chunk in chunks:
            parts = 1 if single else self._part_count(chunk)
            planned.extend((chunk, part, parts) for part in range(1, parts + 1))

        requests: list[GenerationRequest] = []
        for index, (chunk, part, parts) in enumerate(planned):
            # Later chunks leave room for the continuation slot added by render().
            reserve = self._continuation_reserve() if index else 0
            template = PromptTemplate(
                instruction_sections=self._instructions(spec, chunk, figures, part, parts),
                context_slots=self._context_slots(chunk, ctx, reserve),
                max_output_units=min(chunk.max_output_units, self.config.max_output_ceiling),
            )
            requests.append(GenerationRequest(
                substage=spec.substage,
                chunk_index=index,
                chunk_count=len(planned),
                mode=chunk.mode,
                template=template,
            ))
        logger.debug("Substage %s: %d request(s)", spec.substage.value, len(requests))
        return requests

    def _continuation_reserve(self) -> int:
        return max(0, min(self.config.continuation_chars, self.config.context_char_budget))

    def _part_count(self, chunk: ChunkSpec) -> int:
        estimate = math.ceil(chunk.max_words * self.config.tokens_per_word)
        ceiling = max(1, self.config.max_output_ceiling)
        return max(1, math.ceil(estimate / ceiling))

    def _merge_chunks(self, spec: SubstageSpec) -> ChunkSpec:
        """Collapse a substage into one chunk for single-shot generation."""
        chunks = spec.chunks
        mode = (
            GenerationMode.THINKING_SEARCH
            if any(c.mode == GenerationMode.THINKING_SEARCH for c in chunks)
            else chunks[0].mode
        )
        requirements: list[str] = []
        for c in chunks:
            requirements.append(f"{c.heading} ({c.min_words}-{c.max_words} words)")
            requirements.extend(f"  {r}" for r in c.requirements)
        upstream = []
        for c in chunks:
            for s in c.upstream:
                if s not in upstream:
                    upstream.append(s)
        prior = []
        for c in chunks:
            for p in c.prior_substages:
                if p not in prior:
                    prior.append(p)
        return ChunkSpec(
            heading=spec.title,
            min_words=sum(c.min_words for c in chunks),
            max_words=sum(c.max_words for c in chunks),
            requirements=requirements,
            style=chunks[0].style,
            mode=mode,
            max_output_units=sum(c.max_output_units for c in chunks),
            upstream=upstream,
            prior_substages=prior,
            include_topic=any(c.include_topic for c in chunks),
            include_objectives=any(c.include_objectives for c in chunks),
            parameters_chars=max(c.parameters_chars for c in chunks),
            include_figures=any(c.include_figures for c in chunks),
        )

    # -----------------------------------------------------------------------
    # Template parts
    # -----------------------------------------------------------------------

    def _instructions(
        self,
        spec: SubstageSpec,
        chunk: ChunkSpec,
        figures: list[FigureMetadata],
        part: int,
        parts: int,
    ) -> list[str]:
        min_words = math.ceil(chunk.min_words / parts)
        max_words = math.ceil(chunk.max_words / parts)
        head = (
            f"Generate the \"{chunk.heading}\" part of {spec.title} "
            f"({min_words}-{max_words} words)."
        )
        if parts > 1:
            head += f" This is part {part} of {parts}; cover only its share of the requirements."
        sections = [head]
        if chunk.requirements:
            sections.append("Requirements:\n" + "\n".join(f"- {r}" for r in chunk.requirements))
        if chunk.include_figures:
            selected = figures
            if chunk.figure_slice is not None:
                start, stop = chunk.figure_slice
                selected = figures[start:stop]
            if selected:
                sections.append(
                    "Integrate and discuss these figures, citing them by number:\n" + _figure_lines(selected)
                )
        sections.append(
            "Write in markdown with ### subheadings. Do not repeat the section title."
            + (f"\nStyle: {chunk.style}" if chunk.style else "")
        )
        return sections

    def _context_slots(self, chunk: ChunkSpec, ctx: SubstageContext, reserve: int = 0) -> list[ContextSlot]:
        raw: list[ContextSlot] = []
        rc = ctx.research_context
        if chunk.include_topic:
            topic = rc.topic + (f" ({rc.field})" if rc.field else "")
            raw.append(ContextSlot(label="Research Topic", text=topic))
        if chunk.include_objectives:
            objectives = "; ".join(rc.objectives) or "Comprehensive analysis of the research topic"
            raw.append(ContextSlot(label="Research Objectives", text=objectives))
        if chunk.parameters_chars:
            params = json.dumps(ctx.parameters, indent=2, sort_keys=True, default=str)
            raw.append(ContextSlot(label="Research Parameters", text=_clip(params, chunk.parameters_chars)))
        for s in chunk.upstream:
            stop = s.stop if s.stop is not None else s.start + 1
            text = _clip(" ".join(ctx.upstream_results[s.start:stop]), s.max_chars).strip()
            text = text or s.fallback
            if text:
                raw.append(ContextSlot(label=s.label, text=text))
        for p in chunk.prior_substages:
            previous = ctx.previous(p.substage)
            if previous is not None and previous.content:
                label = p.label or f"Substage {p.substage.value}"
                raw.append(ContextSlot(label=label, text=_clip(previous.content, p.max_chars)))
        return self._apply_budget(raw, self.config.context_char_budget - reserve)

    def _apply_budget(self, slots: list[ContextSlot], budget: int) -> list[ContextSlot]:
        remaining = budget
        bounded: list[ContextSlot] = []
        for slot in slots:
            if remaining <= 0:
                logger.debug("Context budget exhausted; dropping slot %r", slot.label)
                continue
            text = _clip(slot.text, remaining)
            remaining -= len(text)
            bounded.append(ContextSlot(label=slot.label, text=text))
        return bounded

    # -----------------------------------------------------------------------
    # Rendering
    # -----------------------------------------------------------------------

    def render(self, request: GenerationRequest, prior_chunks: list[str]) -> tuple[str, str]:
        """Render *request* to ``(prompt, context)`` text.

        ``prior_chunks`` are the outputs already produced in this substage;
        the tail of the last one is appended as a continuation slot.
        """
        slots = list(request.template.context_slots)
        used = sum(len(slot.text) for slot in slots)
        room = min(self.config.continuation_chars, self.config.context_char_budget - used)
        if request.chunk_index > 0 and prior_chunks and room > 0:
            tail = prior_chunks[-1][-room:]
            slots.append(ContextSlot(label=CONTINUATION_LABEL, text=tail))
        prompt = "\n\n".join(request.template.instruction_sections)
        context = "\n\n".join(f"{slot.label}:\n{slot.text}" for slot in slots)
        return prompt, context
