"""SubstageOrchestrator: runs the seven substages strictly in order.

Each substage is generated chunk by chunk; every chunk sees the research
context, the upstream stage results and the finished earlier substages, plus
the tail of the chunk before it. Nothing runs concurrently: one ``generate``
call is in flight at a time and a failure stops the run before any later
substage starts.
"""

from __future__ import annotations

import logging
import math
import time

from .agents.generation_service import GenerationService
from .errors import TruncatedOutputError
from .logging_config import NullCallbacks, PipelineCallbacks, ProgressCallback
from .models import (
    GenerationMode,
    GenerationOptions,
    ProjectConfig,
    SubstageResult,
    SubstageSpec,
)
from .tools.figure_catalog import figures_for_placement
from .tools.prompt_builder import ChunkedPromptBuilder, SubstageContext

logger = logging.getLogger(__name__)

REFINE_PROMPT = """\
Edit the section "{title}" given above, which was written in {parts} separate parts.
Smooth the transitions between parts and remove verbatim repetition.
Keep every heading, figure citation, number and reference. Do not shorten the
text and do not add new claims. Return the edited section only."""


def count_words(text: str) -> int:
    return len(text.split())


def estimate_tokens(text: str) -> int:
    """Rough token estimate: four characters per token."""
    return round(len(text) / 4)


class SubstageOrchestrator:
    """Sequences substages and their chunks against a ``GenerationService``."""

    def __init__(
        self,
        config: ProjectConfig,
        service: GenerationService,
        builder: ChunkedPromptBuilder | None = None,
        callbacks: PipelineCallbacks | None = None,
        *,
        enable_refinement: bool = False,
    ) -> None:
        self.config = config
        self.service = service
        self.builder = builder or ChunkedPromptBuilder(config)
        self.callbacks = callbacks or NullCallbacks()
        self.enable_refinement = enable_refinement

    async def run(
        self,
        specs: list[SubstageSpec],
        base_ctx: SubstageContext,
        progress: ProgressCallback | None = None,
    ) -> list[SubstageResult]:
        """Generate every substage in order and return the results.

        Substage *k* is given a context holding only results ``0..k-1``.
        """
        results: list[SubstageResult] = []
        for spec in specs:
            if progress is not None:
                progress(f"Substage {spec.substage.value}: {spec.title}", spec.progress_milestone)
            ctx = base_ctx.model_copy(update={"previous_results": list(results)})
            results.append(await self.run_substage(spec, ctx))
        return results

    async def run_substage(self, spec: SubstageSpec, ctx: SubstageContext) -> SubstageResult:
        """Generate one substage; raises on the first failed chunk."""
        label = spec.substage.value
        self.callbacks.on_substage_start(label, spec.title)
        started = time.monotonic()

        requests = self.builder.build_requests(spec, ctx)
        outputs: list[str] = []
        truncated: list[int] = []
        for request in requests:
            self.callbacks.on_chunk(label, request.chunk_index + 1, request.chunk_count)
            prompt, context = self.builder.render(request, outputs)
            options = GenerationOptions(max_output_units=request.template.max_output_units)
            try:
                text = await self.service.generate(prompt, context, request.mode, options)
            except TruncatedOutputError as e:
                if self.config.on_truncation != "accept":
                    raise
                self.callbacks.on_warning(
                    f"Substage {label} chunk {request.chunk_index + 1}/{request.chunk_count} "
                    "was truncated; keeping partial output"
                )
                truncated.append(request.chunk_index)
                text = e.partial_text
            if text.strip():
                outputs.append(text.strip())

        content = "\n\n".join(outputs)
        if self.enable_refinement and len(outputs) > 1:
            content = await self._refine(spec, content, len(outputs))

        word_count = count_words(content)
        result = SubstageResult(
            substage=spec.substage,
            title=spec.title,
            content=content,
            token_usage=estimate_tokens(content),
            figures_referenced=figures_for_placement(ctx.figures, spec.figure_placement),
            generation_time_seconds=round(time.monotonic() - started),
            word_count=word_count,
            chunk_count=len(requests),
            truncated_chunks=truncated,
        )
        logger.info(
            "Substage %s (%s): %d words in %d chunk(s)",
            label, spec.title, word_count, len(requests),
        )
        self.callbacks.on_substage_end(label, word_count)
        return result

    async def _refine(self, spec: SubstageSpec, content: str, parts: int) -> str:
        """One smoothing pass; the edit is kept only if it preserves enough words."""
        original_words = count_words(content)
        units = min(
            self.config.max_output_ceiling,
            math.ceil(original_words * self.config.tokens_per_word * 1.2) or 1,
        )
        try:
            edited = await self.service.generate(
                REFINE_PROMPT.format(title=spec.title, parts=parts),
                content,
                GenerationMode.THINKING_ONLY,
                GenerationOptions(max_output_units=units),
            )
        except TruncatedOutputError:
            self.callbacks.on_warning(f"Refinement of substage {spec.substage.value} was truncated; discarded")
            return content

        if count_words(edited) < self.config.refinement_min_ratio * original_words:
            self.callbacks.on_warning(
                f"Refinement of substage {spec.substage.value} dropped too much text; discarded"
            )
            return content
        return edited.strip()
