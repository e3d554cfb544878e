"""The seven fixed substages and the chunk plan for each.

Substage k reads the upstream stage results and substages 0..k-1 only.
``SECTION_ANCHORS`` is the single source of the HTML ids used by both the
table of contents and the body sections.
"""

from __future__ import annotations

from .models import (
    ChunkSpec,
    FigurePlacement,
    GenerationMode,
    PriorSubstageSlice,
    SubstageId,
    SubstageSpec,
    UpstreamSlice,
)

SEARCH = GenerationMode.THINKING_SEARCH

FIGURES_ANCHOR = "figures"
FIGURES_TITLE = "Comprehensive Figures & Legends"

SECTION_ANCHORS: dict[SubstageId, str] = {
    SubstageId.SUMMARY: "abstract",
    SubstageId.BACKGROUND: "introduction",
    SubstageId.METHODS: "methodology",
    SubstageId.FINDINGS: "results",
    SubstageId.INTERPRETATION: "discussion",
    SubstageId.CLOSURE: "conclusions",
    SubstageId.BIBLIOGRAPHY: "references",
}

INITIALIZATION_MILESTONE = 10
ASSEMBLY_MILESTONE = 100


def _up(start: int, stop: int | None = None, max_chars: int = 800,
        label: str = "Research Context", fallback: str = "") -> UpstreamSlice:
    return UpstreamSlice(start=start, stop=stop, max_chars=max_chars, label=label, fallback=fallback)


def _prior(substage: SubstageId, max_chars: int, label: str) -> PriorSubstageSlice:
    return PriorSubstageSlice(substage=substage, max_chars=max_chars, label=label)


_SUMMARY = SubstageSpec(
    substage=SubstageId.SUMMARY,
    title="Abstract & Executive Summary",
    anchor=SECTION_ANCHORS[SubstageId.SUMMARY],
    figure_placement=None,
    progress_milestone=20,
    chunks=[
        ChunkSpec(
            heading="Background",
            min_words=400, max_words=500, max_output_units=6000,
            include_topic=True,
            requirements=[
                "Significance of the research problem and current challenges",
                "Scale of the problem with supporting statistics",
                "Limitations of current approaches",
                "Research gaps in the current literature",
            ],
            upstream=[_up(0, max_chars=800, label="Key Research Context",
                          fallback="Comprehensive systematic analysis of the research topic")],
            style="High-impact journal quality with technical precision.",
        ),
        ChunkSpec(
            heading="Methods & Objectives",
            min_words=450, max_words=500, max_output_units=6000,
            include_objectives=True,
            requirements=[
                "Multi-stage systematic research approach",
                "Evidence synthesis and bias detection",
                "Causal inference and confidence scoring",
                "Temporal reasoning and pattern detection",
            ],
            style="Methodologically rigorous with enough detail for replication.",
        ),
        ChunkSpec(
            heading="Results",
            min_words=600, max_words=700, max_output_units=8000,
            requirements=[
                "Key quantitative findings with p-values",
                "Effect sizes with 95% confidence intervals",
                "Model performance metrics (sensitivity, specificity, AUC)",
                "Meta-analytical synthesis with heterogeneity assessment",
            ],
            upstream=[_up(2, 5, max_chars=1200, label="Key Findings")],
            style="Rigorous quantitative reporting suitable for publication.",
        ),
        ChunkSpec(
            heading="Conclusions",
            min_words=400, max_words=500, max_output_units=6000,
            requirements=[
                "Practice-changing recommendations",
                "Implementation pathway",
                "Novel contributions and methodological innovations",
                "Future research directions",
            ],
            upstream=[_up(7, max_chars=600, label="Implementation Context",
                          fallback="Translation pathway with immediate and long-term applications")],
            style="Actionable conclusions with a clear translation pathway.",
        ),
    ],
)

_BACKGROUND = SubstageSpec(
    substage=SubstageId.BACKGROUND,
    title="Introduction & Literature Review",
    anchor=SECTION_ANCHORS[SubstageId.BACKGROUND],
    figure_placement=FigurePlacement.INTRODUCTION,
    progress_milestone=35,
    chunks=[
        ChunkSpec(
            heading="Domain Background",
            min_words=700, max_words=800, max_output_units=8000, mode=SEARCH,
            include_topic=True,
            requirements=[
                "Full spectrum of the problem and its variants",
                "Current classification systems and documented limitations",
                "Open challenges in prognosis, selection and monitoring",
                "Affected populations, demographics and burden",
            ],
            upstream=[_up(0, max_chars=1000)],
            style="Comprehensive review with extensive detail and literature integration.",
        ),
        ChunkSpec(
            heading="Underlying Mechanisms",
            min_words=700, max_words=800, max_output_units=8000, mode=SEARCH,
            requirements=[
                "Mechanisms driving the studied phenomenon",
                "Detection methods and technical considerations",
                "Significance in related domains with translational potential",
                "Measurement platforms and their trade-offs",
            ],
            upstream=[_up(1, max_chars=1000)],
            style="Technical precision with mechanistic depth.",
        ),
        ChunkSpec(
            heading="State of the Field",
            min_words=900, max_words=1000, max_output_units=10000, mode=SEARCH,
            requirements=[
                "Landmark studies and their key findings",
                "Conflicting results and unresolved questions",
                "Methodological limitations of prior work",
                "Gaps this research addresses",
            ],
            upstream=[_up(2, max_chars=1200)],
            style="Critical literature synthesis.",
        ),
        ChunkSpec(
            heading="Framework Rationale",
            min_words=700, max_words=800, max_output_units=8000,
            include_figures=True,
            requirements=[
                "Why a graph-based multi-stage framework suits this problem",
                "Advantages over conventional review approaches",
                "How the framework visualizations support the argument",
            ],
            style="Persuasive, well-structured rationale.",
        ),
        ChunkSpec(
            heading="Research Objectives & Hypotheses",
            min_words=600, max_words=700, max_output_units=8000,
            include_objectives=True,
            requirements=[
                "Primary and secondary objectives",
                "Testable hypotheses with expected outcomes",
                "Scope and boundaries of the study",
            ],
            prior_substages=[_prior(SubstageId.SUMMARY, 600, "Research Framework Context")],
            style="Precise, testable formulation.",
        ),
    ],
)

_METHODS = SubstageSpec(
    substage=SubstageId.METHODS,
    title="Methodology & Framework",
    anchor=SECTION_ANCHORS[SubstageId.METHODS],
    figure_placement=FigurePlacement.METHODOLOGY,
    progress_milestone=50,
    chunks=[
        ChunkSpec(
            heading="Framework Overview",
            min_words=800, max_words=900, max_output_units=8000,
            parameters_chars=800,
            requirements=[
                "Stage-by-stage breakdown from initialization to final analysis",
                "Hypothesis generation and evidence integration loops",
                "Graph optimization, pruning and subgraph extraction",
                "Reflection and bias detection protocols",
            ],
            style="Implementation-level detail for replication.",
        ),
        ChunkSpec(
            heading="Systematic Literature Search",
            min_words=600, max_words=700, max_output_units=8000, mode=SEARCH,
            requirements=[
                "Database selection and search term construction",
                "Inclusion and exclusion criteria",
                "PRISMA compliance and quality assessment",
                "Data extraction and validation procedures",
            ],
            upstream=[_up(1, max_chars=800)],
            style="Methodological rigor meeting systematic review standards.",
        ),
        ChunkSpec(
            heading="Data Analysis Methods",
            min_words=700, max_words=800, max_output_units=8000,
            requirements=[
                "Network analysis algorithms",
                "Random and fixed effects meta-analysis with heterogeneity statistics",
                "Publication bias detection",
                "Bayesian and causal inference approaches",
            ],
            style="Technical precision with reproducible methodology.",
        ),
        ChunkSpec(
            heading="Evidence Synthesis Process",
            min_words=600, max_words=700, max_output_units=8000,
            include_figures=True,
            requirements=[
                "Evidence grading and weighting",
                "Conflict resolution between sources",
                "Confidence scoring",
            ],
            style="Transparent and auditable process description.",
        ),
        ChunkSpec(
            heading="Validation & Technical Implementation",
            min_words=700, max_words=800, max_output_units=8000,
            requirements=[
                "Internal and external validation strategy",
                "Sensitivity and robustness analyses",
                "Software environment and reproducibility measures",
            ],
            style="Complete technical documentation.",
        ),
    ],
)

_FINDINGS = SubstageSpec(
    substage=SubstageId.FINDINGS,
    title="Results & Statistical Analysis",
    anchor=SECTION_ANCHORS[SubstageId.FINDINGS],
    figure_placement=FigurePlacement.RESULTS,
    progress_milestone=65,
    chunks=[
        ChunkSpec(
            heading="Search Results & Study Characteristics",
            min_words=600, max_words=700, max_output_units=8000,
            requirements=[
                "Study selection flow with counts",
                "Characteristics of included studies",
                "Quality assessment outcomes",
            ],
            upstream=[_up(2, max_chars=1000, label="Data Context")],
            style="Precise descriptive reporting.",
        ),
        ChunkSpec(
            heading="Primary Outcome Analysis",
            min_words=800, max_words=900, max_output_units=10000,
            include_figures=True, figure_slice=(0, 3),
            requirements=[
                "Frequencies and distributions with confidence intervals",
                "Subgroup differences with significance tests",
            ],
            upstream=[_up(3, max_chars=1200, label="Research Data")],
            style="Rigorous quantitative reporting.",
        ),
        ChunkSpec(
            heading="Outcome Correlations & Prognostic Factors",
            min_words=800, max_words=900, max_output_units=10000,
            include_figures=True, figure_slice=(3, 6),
            requirements=[
                "Survival or outcome models with hazard ratios",
                "Multivariable adjustment and model fit",
            ],
            upstream=[_up(4, max_chars=1200, label="Research Data")],
            style="Rigorous quantitative reporting.",
        ),
        ChunkSpec(
            heading="Complexity & Network Analysis",
            min_words=800, max_words=900, max_output_units=10000,
            include_figures=True, figure_slice=(6, 9),
            requirements=[
                "Network metrics and community structure",
                "Hub features and their associations",
            ],
            upstream=[_up(5, max_chars=1200, label="Research Data")],
            style="Graph-theoretic precision.",
        ),
        ChunkSpec(
            heading="Marker Validation & Utility",
            min_words=700, max_words=800, max_output_units=8000,
            include_figures=True, figure_slice=(9, 12),
            requirements=[
                "Discrimination and calibration metrics",
                "Comparison against current standards",
            ],
            upstream=[_up(6, max_chars=1200, label="Research Data")],
            style="Validation-focused reporting.",
        ),
        ChunkSpec(
            heading="Meta-Analytical Synthesis",
            min_words=700, max_words=800, max_output_units=8000,
            include_figures=True, figure_slice=(12, None),
            requirements=[
                "Pooled estimates with heterogeneity",
                "Sensitivity analyses and publication bias assessment",
            ],
            upstream=[_up(7, max_chars=1200, label="Research Data")],
            style="Meta-analytical rigor.",
        ),
    ],
)

_INTERPRETATION = SubstageSpec(
    substage=SubstageId.INTERPRETATION,
    title="Discussion & Implications",
    anchor=SECTION_ANCHORS[SubstageId.INTERPRETATION],
    figure_placement=FigurePlacement.DISCUSSION,
    progress_milestone=80,
    chunks=[
        ChunkSpec(
            heading="Principal Findings Interpretation",
            min_words=800, max_words=900, max_output_units=10000, mode=SEARCH,
            requirements=[
                "Summary of novel discoveries with mechanistic insight",
                "Comparison with existing literature and explanation of discrepancies",
                "Statistical versus practical significance",
            ],
            upstream=[_up(4, 7, max_chars=1500, label="Research Data Integration")],
            style="Deep interpretation with a translation focus.",
        ),
        ChunkSpec(
            heading="Mechanistic Insights",
            min_words=900, max_words=1000, max_output_units=12000, mode=SEARCH,
            requirements=[
                "Mechanisms underlying the observed effects",
                "Connections to established pathways",
            ],
            upstream=[_up(5, max_chars=1200, label="Research Data Context")],
            style="Mechanistic depth.",
        ),
        ChunkSpec(
            heading="Practical Translation",
            min_words=900, max_words=1000, max_output_units=12000, mode=SEARCH,
            include_figures=True,
            requirements=[
                "Applications in practice",
                "Stratification and personalisation potential",
            ],
            upstream=[_up(6, max_chars=1200, label="Research Data Context")],
            style="Translation-oriented discussion.",
        ),
        ChunkSpec(
            heading="System Integration",
            min_words=700, max_words=800, max_output_units=8000,
            requirements=[
                "Infrastructure and workflow requirements",
                "Training, standardisation and cost-effectiveness",
            ],
            style="Implementation-focused analysis.",
        ),
        ChunkSpec(
            heading="Methodological Strengths",
            min_words=600, max_words=700, max_output_units=8000,
            requirements=[
                "Strengths of the framework and analyses",
                "Robustness of the evidence base",
            ],
            style="Balanced self-assessment.",
        ),
        ChunkSpec(
            heading="Limitations & Future Research",
            min_words=800, max_words=900, max_output_units=10000, mode=SEARCH,
            requirements=[
                "Study limitations and potential biases",
                "Generalisability constraints",
                "Priority questions for future work",
            ],
            upstream=[_up(7, max_chars=1000)],
            style="Candid and constructive.",
        ),
    ],
)

_CLOSURE = SubstageSpec(
    substage=SubstageId.CLOSURE,
    title="Conclusions & Future Directions",
    anchor=SECTION_ANCHORS[SubstageId.CLOSURE],
    figure_placement=None,
    progress_milestone=90,
    chunks=[
        ChunkSpec(
            heading="Conclusions & Future Directions",
            min_words=2000, max_words=2500, max_output_units=15000,
            include_objectives=True,
            requirements=[
                "Summary of key contributions (600-700 words)",
                "Practice-changing implications (500-600 words)",
                "Future research priorities: short, medium and long term (700-800 words)",
                "Implementation roadmap in phases (400-500 words)",
                "Research legacy and impact (300-400 words)",
            ],
            prior_substages=[
                _prior(SubstageId.SUMMARY, 600, "Abstract findings"),
                _prior(SubstageId.BACKGROUND, 600, "Introduction insights"),
                _prior(SubstageId.METHODS, 600, "Methodology framework"),
                _prior(SubstageId.FINDINGS, 800, "Key results summary"),
                _prior(SubstageId.INTERPRETATION, 800, "Discussion insights"),
            ],
            upstream=[_up(7, max_chars=1200, label="Final analysis")],
            style="Definitive closure with clear pathways for continued work.",
        ),
    ],
)

_BIBLIOGRAPHY = SubstageSpec(
    substage=SubstageId.BIBLIOGRAPHY,
    title="References & Technical Appendices",
    anchor=SECTION_ANCHORS[SubstageId.BIBLIOGRAPHY],
    figure_placement=FigurePlacement.APPENDIX,
    progress_milestone=95,
    chunks=[
        ChunkSpec(
            heading="References & Technical Appendices",
            min_words=2000, max_words=2500, max_output_units=15000,
            parameters_chars=800,
            requirements=[
                "Vancouver-style references, one per line, numbered '1. ', '2. ', ... (40 or more)",
                "Appendix A: search strategy details",
                "Appendix B: statistical analysis details",
                "Appendix C: quality assessment tools and results",
                "Appendix D: supplementary data tables and figures",
                "Appendix E: technical implementation details",
            ],
            prior_substages=[
                _prior(SubstageId.SUMMARY, 400, "Abstract content"),
                _prior(SubstageId.BACKGROUND, 400, "Introduction literature"),
                _prior(SubstageId.METHODS, 400, "Methodology details"),
                _prior(SubstageId.FINDINGS, 400, "Results findings"),
                _prior(SubstageId.INTERPRETATION, 400, "Discussion insights"),
                _prior(SubstageId.CLOSURE, 400, "Conclusions synthesis"),
            ],
            style="Publication-ready formatting with consistent numbering.",
        ),
    ],
)

DEFAULT_SUBSTAGES: tuple[SubstageSpec, ...] = (
    _SUMMARY,
    _BACKGROUND,
    _METHODS,
    _FINDINGS,
    _INTERPRETATION,
    _CLOSURE,
    _BIBLIOGRAPHY,
)


def default_substages() -> list[SubstageSpec]:
    """Fresh copies of the seven substage specs, in order."""
    return [spec.model_copy(deep=True) for spec in DEFAULT_SUBSTAGES]


def validate_substage_order(specs: list[SubstageSpec]) -> None:
    """Check the plan covers every substage once, in order, with rising milestones.

    Raises ``ValueError`` describing the first violation.
    """
    ids = [s.substage for s in specs]
    if ids != list(SubstageId):
        raise ValueError(f"Substages must be {[s.value for s in SubstageId]} in order, got {[i.value for i in ids]}")
    previous = INITIALIZATION_MILESTONE
    for spec in specs:
        if spec.anchor != SECTION_ANCHORS[spec.substage]:
            raise ValueError(f"Substage {spec.substage.value} anchor {spec.anchor!r} is not canonical")
        if not previous < spec.progress_milestone < ASSEMBLY_MILESTONE:
            raise ValueError(f"Substage {spec.substage.value} milestone {spec.progress_milestone} out of order")
        previous = spec.progress_milestone
        position = ids.index(spec.substage)
        for chunk in spec.chunks:
            for prior in chunk.prior_substages:
                if ids.index(prior.substage) >= position:
                    raise ValueError(
                        f"Substage {spec.substage.value} reads {prior.substage.value}, which is not earlier"
                    )
