"""Pipeline: the single entry point from upstream artifacts to a finished report.

Phase 1: CATALOG      build the deterministic figure catalog
Phase 2: SUBSTAGES    generate substages A-G in order, chunk by chunk
Phase 3: ASSEMBLY     render the HTML document
Phase 4: SCORING      compute completeness metrics
Phase 5: PERSISTENCE  optional, best-effort hand-off to a storage adapter
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Sequence

from .agents.generation_service import AutogenGenerationService, GenerationService
from .errors import PipelineError, StorageError
from .logging_config import NullCallbacks, PipelineCallbacks, ProgressCallback
from .models import (
    ComprehensiveReport,
    GenerationRequest,
    PipelineOptions,
    PipelineOutcome,
    PipelinePhase,
    ProjectConfig,
    ResearchContext,
    SubstageSpec,
)
from .orchestrator import SubstageOrchestrator
from .substages import ASSEMBLY_MILESTONE, INITIALIZATION_MILESTONE, default_substages, validate_substage_order
from .tools.figure_catalog import (
    DirectoryFigureSource,
    FigureSource,
    build_figure_catalog,
    default_figure_filenames,
)
from .tools.prompt_builder import ChunkedPromptBuilder, SubstageContext
from .tools.quality import extract_references, score_report
from .tools.report_builder import assemble_report_html
from .tools.storage import LocalStorageAdapter, StorageAdapter, build_report_bundle, new_session_id

logger = logging.getLogger(__name__)


def _no_progress(label: str, percent: int) -> None:
    pass


class Pipeline:
    """Runs one report generation against a configured generation service.

    The service, storage adapter and figure source default to the AG2
    writer, ``LocalStorageAdapter(config.storage_dir)`` and a directory
    source over ``config.figure_dir`` plus ``config.figure_search_dirs``.
    """

    def __init__(
        self,
        config: ProjectConfig,
        service: GenerationService | None = None,
        storage: StorageAdapter | None = None,
        figure_source: FigureSource | None = None,
        callbacks: PipelineCallbacks | None = None,
        substages: list[SubstageSpec] | None = None,
    ) -> None:
        self.config = config
        self.service = service or AutogenGenerationService(config)
        self.storage = storage or LocalStorageAdapter(config.storage_dir)
        self.figure_source = figure_source or DirectoryFigureSource(
            config.figure_dir, *config.figure_search_dirs,
        )
        self.callbacks = callbacks or NullCallbacks()
        self.specs = substages or default_substages()
        validate_substage_order(self.specs)
        self.builder = ChunkedPromptBuilder(config)

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    def figure_filenames(self) -> list[str]:
        if self.config.figure_files is not None:
            return list(self.config.figure_files)
        return default_figure_filenames()

    def _model_names(self) -> dict[str, str]:
        models = self.config.models
        return {
            "writer": models.writer or models.default,
            "search_writer": models.search_writer or models.writer or models.default,
        }

    def _base_context(
        self,
        research_context: ResearchContext,
        parameters: dict[str, Any],
        upstream_results: Sequence[str],
    ) -> SubstageContext:
        catalog = build_figure_catalog(
            self.figure_filenames(), overview_sentinel=self.config.overview_sentinel,
        )
        return SubstageContext(
            research_context=research_context,
            parameters=dict(parameters),
            upstream_results=list(upstream_results),
            figures=catalog,
        )

    # -----------------------------------------------------------------------
    # Entry points
    # -----------------------------------------------------------------------

    def plan_requests(
        self,
        research_context: ResearchContext,
        parameters: dict[str, Any],
        upstream_results: Sequence[str],
    ) -> list[GenerationRequest]:
        """The full request schedule, without calling the service.

        Earlier-substage slices are empty here because nothing has been
        generated yet.
        """
        ctx = self._base_context(research_context, parameters, upstream_results)
        requests: list[GenerationRequest] = []
        for spec in self.specs:
            requests.extend(self.builder.build_requests(spec, ctx))
        return requests

    async def generate(
        self,
        parameters: dict[str, Any],
        research_context: ResearchContext,
        upstream_results: Sequence[str],
        progress_callback: ProgressCallback | None = None,
        options: PipelineOptions | None = None,
        *,
        generated_on: date | None = None,
    ) -> PipelineOutcome:
        """Generate, assemble, score and optionally persist one report.

        Any failure before the report is complete raises ``PipelineError``
        and no report is returned. A storage failure only sets
        ``persist_warning`` on the outcome.
        """
        options = options or PipelineOptions()
        progress = progress_callback or _no_progress
        report = await self._build_report(
            parameters, research_context, upstream_results, progress, options,
            generated_on or date.today(),
        )
        outcome = PipelineOutcome(report=report)
        if options.persist:
            outcome = self._persist(outcome, parameters, research_context, upstream_results, options)
        return outcome

    async def _build_report(
        self,
        parameters: dict[str, Any],
        research_context: ResearchContext,
        upstream_results: Sequence[str],
        progress: ProgressCallback,
        options: PipelineOptions,
        generated_on: date,
    ) -> ComprehensiveReport:
        phase = PipelinePhase.CATALOG
        try:
            self.callbacks.on_phase_start(phase.value.upper(), "Building figure catalog")
            progress("Initializing multi-substage generation", INITIALIZATION_MILESTONE)
            ctx = self._base_context(research_context, parameters, upstream_results)
            self.callbacks.on_phase_end(phase.value.upper(), True)

            phase = PipelinePhase.SUBSTAGES
            self.callbacks.on_phase_start(phase.value.upper(), f"Generating {len(self.specs)} substages")
            orchestrator = SubstageOrchestrator(
                self.config, self.service, self.builder, self.callbacks,
                enable_refinement=options.enable_refinement,
            )
            results = await orchestrator.run(self.specs, ctx, progress)
            self.callbacks.on_phase_end(phase.value.upper(), True)

            phase = PipelinePhase.ASSEMBLY
            self.callbacks.on_phase_start(phase.value.upper(), "Assembling report document")
            document_html = assemble_report_html(
                research_context.topic,
                results,
                ctx.figures,
                generated_on=generated_on,
                figure_base_path=self.config.figure_base_path,
                strategy_label=self.config.strategy_label,
            )
            self.callbacks.on_phase_end(phase.value.upper(), True)

            phase = PipelinePhase.SCORING
            references = extract_references(results, self.config.reference_limit)
            metrics = score_report(results, len(ctx.figures), len(references), self.config.quality)

            report = ComprehensiveReport(
                title=research_context.topic,
                substage_results=results,
                figure_catalog=ctx.figures,
                total_word_count=sum(r.word_count for r in results),
                total_token_usage=sum(r.token_usage for r in results),
                total_generation_time_seconds=sum(r.generation_time_seconds for r in results),
                references=references,
                document_html=document_html,
                quality_metrics=metrics,
                generated_on=generated_on,
            )
        except Exception as e:
            self.callbacks.on_phase_end(phase.value.upper(), False)
            self.callbacks.on_error(f"{phase.value} failed: {e}")
            raise PipelineError(f"Report generation failed during {phase.value}: {e}") from e

        progress("Report assembled", ASSEMBLY_MILESTONE)
        logger.info(
            "Report complete: %d words, %d figures, %d references",
            report.total_word_count, len(report.figure_catalog), len(report.references),
        )
        return report

    def _persist(
        self,
        outcome: PipelineOutcome,
        parameters: dict[str, Any],
        research_context: ResearchContext,
        upstream_results: Sequence[str],
        options: PipelineOptions,
    ) -> PipelineOutcome:
        report = outcome.report
        session_id = options.session_id or new_session_id()
        title = options.title or f"{report.title} - Multi-Substage Analysis"
        self.callbacks.on_phase_start(PipelinePhase.PERSISTENCE.value.upper(), f"Storing '{title}'")
        try:
            bundle = build_report_bundle(
                report, research_context, parameters, upstream_results,
                figure_source=self.figure_source,
                model_names=self._model_names(),
            )
            analysis_id = self.storage.persist(session_id, title, bundle)
        except Exception as e:
            if not isinstance(e, StorageError):
                logger.exception("Unexpected error while storing report '%s'", title)
            self.callbacks.on_warning(f"Report generated but not stored: {e}")
            self.callbacks.on_phase_end(PipelinePhase.PERSISTENCE.value.upper(), False)
            return outcome.model_copy(update={"persist_warning": str(e)})
        self.callbacks.on_phase_end(PipelinePhase.PERSISTENCE.value.upper(), True)
        return outcome.model_copy(update={"analysis_id": analysis_id})


async def generate_report(
    config: ProjectConfig,
    parameters: dict[str, Any],
    research_context: ResearchContext,
    upstream_results: Sequence[str],
    progress_callback: ProgressCallback | None = None,
    options: PipelineOptions | None = None,
    *,
    service: GenerationService | None = None,
    storage: StorageAdapter | None = None,
    figure_source: FigureSource | None = None,
    callbacks: PipelineCallbacks | None = None,
) -> PipelineOutcome:
    """Convenience wrapper: build a ``Pipeline`` and run it once."""
    pipeline = Pipeline(
        config, service=service, storage=storage, figure_source=figure_source, callbacks=callbacks,
    )
    return await pipeline.generate(
        parameters, research_context, upstream_results, progress_callback, options,
    )
