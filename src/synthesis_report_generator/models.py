"""Pydantic models for the multi-substage report synthesis pipeline."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class FigureCategory(str, Enum):
    OVERVIEW = "overview"
    STATISTICAL = "statistical"
    NETWORK = "network"
    TEMPORAL = "temporal"
    COMPARISON = "comparison"


class FigurePlacement(str, Enum):
    INTRODUCTION = "introduction"
    METHODOLOGY = "methodology"
    RESULTS = "results"
    DISCUSSION = "discussion"
    APPENDIX = "appendix"


class SubstageId(str, Enum):
    """The seven fixed substages, in generation order."""
    SUMMARY = "A"
    BACKGROUND = "B"
    METHODS = "C"
    FINDINGS = "D"
    INTERPRETATION = "E"
    CLOSURE = "F"
    BIBLIOGRAPHY = "G"


class GenerationMode(str, Enum):
    THINKING_ONLY = "thinking-only"
    THINKING_STRUCTURED = "thinking-structured"
    THINKING_SEARCH = "thinking-search"


class PipelinePhase(str, Enum):
    CATALOG = "catalog"
    SUBSTAGES = "substages"
    ASSEMBLY = "assembly"
    SCORING = "scoring"
    PERSISTENCE = "persistence"


# ---------------------------------------------------------------------------
# Upstream inputs
# ---------------------------------------------------------------------------

class ResearchContext(BaseModel):
    """Topic, field and objectives of the research being reported."""
    model_config = ConfigDict(frozen=True)

    topic: str = Field(..., description="Research topic")
    field: str = Field(default="", description="Research field")
    objectives: list[str] = Field(default_factory=list, description="Research objectives")


# ---------------------------------------------------------------------------
# Figure catalog
# ---------------------------------------------------------------------------

class FigureMetadata(BaseModel):
    """One cataloged figure. ``figure_number`` is assigned once and never changes."""
    model_config = ConfigDict(frozen=True)

    filename: str = Field(..., description="Image filename")
    figure_number: int = Field(..., ge=1, description="1-based position in the catalog")
    title: str = Field(..., description="Figure title")
    description: str = Field(default="", description="Short description")
    category: FigureCategory = Field(...)
    placement: FigurePlacement = Field(...)
    legend: str = Field(default="", description="Full legend text")
    cross_references: list[str] = Field(default_factory=list, description="Section and figure labels")


# ---------------------------------------------------------------------------
# Substage plan
# ---------------------------------------------------------------------------

class UpstreamSlice(BaseModel):
    """A bounded slice of the upstream stage results, joined with spaces."""
    start: int = Field(..., ge=0)
    stop: int | None = Field(default=None, description="Exclusive end index; None = start + 1")
    max_chars: int = Field(default=800, ge=0)
    label: str = Field(default="Research Context")
    fallback: str = Field(default="", description="Text used when the slice is empty")


class PriorSubstageSlice(BaseModel):
    """A bounded prefix of an earlier substage's content."""
    substage: SubstageId = Field(...)
    max_chars: int = Field(default=600, ge=0)
    label: str = Field(default="")


class ChunkSpec(BaseModel):
    """One bounded generation request within a substage."""
    heading: str = Field(..., description="Sub-topic heading")
    min_words: int = Field(..., ge=0)
    max_words: int = Field(..., ge=0)
    requirements: list[str] = Field(default_factory=list, description="Requirement bullets")
    style: str = Field(default="", description="Closing style line")
    mode: GenerationMode = Field(default=GenerationMode.THINKING_STRUCTURED)
    max_output_units: int = Field(default=8000, ge=1)
    upstream: list[UpstreamSlice] = Field(default_factory=list)
    prior_substages: list[PriorSubstageSlice] = Field(default_factory=list)
    include_topic: bool = Field(default=False)
    include_objectives: bool = Field(default=False)
    parameters_chars: int = Field(default=0, ge=0, description="Embed parameters JSON up to this many chars")
    include_figures: bool = Field(default=False)
    figure_slice: tuple[int, int | None] | None = Field(
        default=None, description="Slice of the substage figures this chunk discusses",
    )


class SubstageSpec(BaseModel):
    """Static description of one of the seven substages."""
    substage: SubstageId = Field(...)
    title: str = Field(...)
    anchor: str = Field(..., description="Stable HTML id shared by TOC and body")
    figure_placement: FigurePlacement | None = Field(default=None)
    progress_milestone: int = Field(..., ge=0, le=100)
    chunks: list[ChunkSpec] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Prompt templates and requests
# ---------------------------------------------------------------------------

class ContextSlot(BaseModel):
    label: str
    text: str


class PromptTemplate(BaseModel):
    """Structured prompt; rendered to text only at the service boundary."""
    instruction_sections: list[str] = Field(default_factory=list)
    context_slots: list[ContextSlot] = Field(default_factory=list)
    max_output_units: int = Field(..., ge=1)


class GenerationRequest(BaseModel):
    substage: SubstageId
    chunk_index: int = Field(..., ge=0)
    chunk_count: int = Field(..., ge=1)
    mode: GenerationMode
    template: PromptTemplate


class GenerationOptions(BaseModel):
    max_output_units: int = Field(..., ge=1)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class SubstageResult(BaseModel):
    """Output of one substage. Created once, never mutated."""
    model_config = ConfigDict(frozen=True)

    substage: SubstageId
    title: str
    content: str
    token_usage: int = Field(default=0, ge=0, description="Estimated tokens (chars / 4)")
    figures_referenced: tuple[FigureMetadata, ...] = Field(default=())
    generation_time_seconds: int = Field(default=0, ge=0)
    word_count: int = Field(default=0, ge=0)
    chunk_count: int = Field(default=1, ge=0)
    truncated_chunks: tuple[int, ...] = Field(
        default=(), description="Indices of chunks kept despite truncation",
    )


class QualityMetrics(BaseModel):
    """Completeness ratios, each within [0, 100]. Informational only."""
    model_config = ConfigDict(frozen=True)

    academic_rigor: float = Field(default=0.0, ge=0.0, le=100.0)
    content_depth: float = Field(default=0.0, ge=0.0, le=100.0)
    figure_integration: float = Field(default=0.0, ge=0.0, le=100.0)
    reference_quality: float = Field(default=0.0, ge=0.0, le=100.0)


class ComprehensiveReport(BaseModel):
    """Final report of one successful run."""
    model_config = ConfigDict(frozen=True)

    title: str
    substage_results: tuple[SubstageResult, ...]
    figure_catalog: tuple[FigureMetadata, ...]
    total_word_count: int = Field(..., ge=0)
    total_token_usage: int = Field(..., ge=0)
    total_generation_time_seconds: int = Field(..., ge=0)
    references: tuple[str, ...] = Field(default=())
    document_html: str
    quality_metrics: QualityMetrics
    generated_on: date


class FigureFile(BaseModel):
    filename: str
    content: bytes
    media_type: str = "image/png"


class ReportBundle(BaseModel):
    """Everything a storage adapter persists for one report."""
    research_context: ResearchContext
    parameters: dict[str, Any] = Field(default_factory=dict)
    upstream_results: list[str] = Field(default_factory=list)
    document_html: str
    textual_content: dict[str, str] = Field(default_factory=dict, description="anchor -> substage content")
    analysis_data: dict[str, Any] = Field(default_factory=dict)
    table_data: list[dict[str, Any]] = Field(default_factory=list)
    chart_data: list[dict[str, Any]] = Field(default_factory=list)
    figure_files: list[FigureFile] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class PipelineOptions(BaseModel):
    persist: bool = Field(default=False, description="Hand the report to the storage adapter")
    title: str | None = Field(default=None, description="Storage title; defaults to '<report title> - Multi-Substage Analysis'")
    enable_refinement: bool = Field(default=False, description="Run one transition-smoothing pass per substage")
    session_id: str | None = Field(default=None, description="Storage session id; generated when absent")


class PipelineOutcome(BaseModel):
    """Result of the entry point: the report, plus a warning if persistence failed."""
    report: ComprehensiveReport
    analysis_id: str | None = None
    persist_warning: str | None = None

    @property
    def ok(self) -> bool:
        return self.persist_warning is None


# ---------------------------------------------------------------------------
# Project Configuration (loaded from YAML / Hydra)
# ---------------------------------------------------------------------------

class AzureConfig(BaseModel):
    """Azure OpenAI connection settings."""
    api_key: str = Field(default="", description="Azure OpenAI API key (or ${ENV_VAR})")
    api_version: str = Field(default="", description="API version")
    endpoint: str = Field(default="", description="Azure endpoint URL")


class ModelEndpointOverride(BaseModel):
    """Per-model endpoint settings that replace the global azure block."""
    endpoint: str = Field(...)
    api_key: str = Field(default="")
    api_version: str = Field(default="")
    api_type: str | None = Field(default=None, description="e.g. 'anthropic'; None = infer from endpoint")


class ModelConfig(BaseModel):
    """LLM model configuration per role."""
    default: str = Field(default="gpt-5.2", description="Default model")
    writer: str | None = Field(default=None)
    search_writer: str | None = Field(default=None, description="Model for thinking-search chunks")
    refiner: str | None = Field(default=None)
    overrides: dict[str, ModelEndpointOverride] = Field(default_factory=dict)


class QualityTargets(BaseModel):
    words: int = Field(default=12000)
    substages: int = Field(default=7)
    figures: int = Field(default=20)
    references: int = Field(default=40)


class ProjectConfig(BaseModel):
    """Full project configuration."""
    project_name: str = Field(default="synthesis-report")
    output_dir: str = Field(default="output/", description="Where the CLI writes report.html")
    storage_dir: str = Field(default="output/analyses/", description="Root for LocalStorageAdapter")
    inputs_file: str | None = Field(default=None, description="YAML with research_context, parameters, stage_results")

    # Figures
    figure_dir: str = Field(default="figures/", description="First directory probed for figure bytes")
    figure_search_dirs: list[str] = Field(default_factory=list, description="Further directories, in order")
    figure_files: list[str] | None = Field(default=None, description="Ordered figure filenames; None = built-in list")
    overview_sentinel: str = Field(default="Evidence_Analysis")
    figure_base_path: str = Field(default="figures", description="Image src prefix in the HTML")

    # Azure OpenAI
    azure: AzureConfig = Field(default_factory=AzureConfig)
    models: ModelConfig = Field(default_factory=ModelConfig)
    timeout: int = Field(default=120, description="LLM call timeout in seconds")
    seed: int = Field(default=42)
    temperature: float = Field(default=0.4)

    # Chunking
    chunking: str = Field(default="chunked", description="'chunked' or 'single'")
    max_output_ceiling: int = Field(default=16000, description="Hard per-call output ceiling")
    tokens_per_word: float = Field(default=1.5, description="Output units per target word")
    context_char_budget: int = Field(default=6000, description="Bound on all context slots of one request")
    continuation_chars: int = Field(default=600, description="Tail of the previous chunk passed forward")
    on_truncation: str = Field(default="fail", description="'fail' or 'accept'")
    refinement_min_ratio: float = Field(default=0.9)

    # Report
    strategy_label: str = Field(default="Multi-substage progressive synthesis (A-G)")
    reference_limit: int = Field(default=50)
    quality: QualityTargets = Field(default_factory=QualityTargets)

    # Defaults for PipelineOptions when run from the CLI
    persist: bool = Field(default=False)
    report_title: str | None = Field(default=None)
    enable_refinement: bool = Field(default=False)
