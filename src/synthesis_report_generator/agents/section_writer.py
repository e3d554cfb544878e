"""SectionWriter agents: one AG2 assistant per generation mode."""

from __future__ import annotations

import autogen

from ..config import build_role_llm_config
from ..models import GenerationMode, ProjectConfig

SYSTEM_PROMPT = """\
You are a senior research writer producing one section of a comprehensive,
publication-quality research report. The report is written in parts; you
receive instructions for exactly one part plus the research context it may use.

Rules:
- Write only the requested part, in markdown, using ### subheadings.
- Stay within the requested word range.
- Report quantitative results with effect sizes, confidence intervals and p-values where the context supports them.
- Cite figures as "Figure N" using only the figure numbers you are given.
- When a previous part is supplied, continue from it without repeating its content.
- Never invent figure numbers, section numbers or stage names that are not in the context.
{mode_block}\
Return the section text only, without preamble or markdown fences.
"""

_MODE_GUIDANCE: dict[GenerationMode, str] = {
    # thinking-only is also used for the optional transition-smoothing pass
    GenerationMode.THINKING_ONLY: (
        "- When asked to edit existing text, keep every heading, figure citation and number.\n"
    ),
    GenerationMode.THINKING_STRUCTURED: (
        "- Plan the structure before writing; favour clear, numbered argumentation.\n"
    ),
    GenerationMode.THINKING_SEARCH: (
        "- Ground claims in the published literature; name landmark studies and authors where known.\n"
    ),
}


def make_section_writer(config: ProjectConfig, mode: GenerationMode) -> autogen.AssistantAgent:
    """Create the SectionWriter agent for *mode*."""
    return autogen.AssistantAgent(
        name=f"SectionWriter_{mode.value.replace('-', '_')}",
        system_message=SYSTEM_PROMPT.format(mode_block=_MODE_GUIDANCE[mode]),
        llm_config=build_role_llm_config(mode.value, config),
    )
