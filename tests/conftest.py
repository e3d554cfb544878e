"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from synthesis_report_generator.errors import ServiceError, TruncatedOutputError
from synthesis_report_generator.models import (
    ChunkSpec,
    GenerationMode,
    GenerationOptions,
    ProjectConfig,
    ResearchContext,
)
from synthesis_report_generator.substages import default_substages

FIXTURES_DIR = Path(__file__).parent / "fixtures"
SAMPLE_CONFIG = FIXTURES_DIR / "sample_config.yaml"
SAMPLE_INPUTS = FIXTURES_DIR / "sample_inputs.yaml"

REFERENCE_LINES = "\n".join(f"{i}. Author {i}. Title {i}. J Example. 2020;{i}:1-10." for i in range(1, 6))


class FakeGenerationService:
    """In-memory GenerationService that records every call.

    ``fail_on`` / ``truncate_on`` are 1-based call numbers.
    """

    def __init__(self, *, fail_on: int | None = None, truncate_on: int | None = None,
                 words: int = 10, refine_reply: str | None = None) -> None:
        self.fail_on = fail_on
        self.truncate_on = truncate_on
        self.words = words
        self.refine_reply = refine_reply
        self.calls: list[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate(self, prompt: str, context: str, mode: GenerationMode,
                       options: GenerationOptions) -> str:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self.calls.append({"prompt": prompt, "context": context, "mode": mode, "options": options})
            n = len(self.calls)
            if n == self.fail_on:
                raise ServiceError(f"rate limited on call {n}")
            if mode == GenerationMode.THINKING_ONLY and self.refine_reply is not None:
                return self.refine_reply
            text = f"chunk{n} " + " ".join(["word"] * (self.words - 1))
            if "References" in prompt:
                text += "\n" + REFERENCE_LINES
            if n == self.truncate_on:
                raise TruncatedOutputError("hit limit", partial_text=f"partial{n} text")
            return text
        finally:
            self.in_flight -= 1


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def sample_config_path() -> Path:
    return SAMPLE_CONFIG


@pytest.fixture
def sample_inputs_path() -> Path:
    return SAMPLE_INPUTS


@pytest.fixture
def config(tmp_path: Path) -> ProjectConfig:
    return ProjectConfig(
        project_name="Test",
        output_dir=str(tmp_path / "output"),
        storage_dir=str(tmp_path / "analyses"),
        figure_dir=str(tmp_path / "figures"),
    )


@pytest.fixture
def research_context() -> ResearchContext:
    return ResearchContext(
        topic="Sensor Drift in Long-Term Environmental Monitoring",
        field="Environmental Engineering",
        objectives=["Quantify drift rates", "Identify drivers"],
    )


@pytest.fixture
def stage_results() -> list[str]:
    return [f"Stage {i + 1} result text with value 0.{i} (95% CI 0.1-0.9), p < 0.05." for i in range(8)]


@pytest.fixture
def two_chunk_specs():
    """The seven default substages, each cut down to two small chunks."""
    specs = default_substages()
    out = []
    for spec in specs:
        out.append(spec.model_copy(update={"chunks": [
            ChunkSpec(heading="Part 1", min_words=10, max_words=20, include_figures=True),
            ChunkSpec(heading="Part 2", min_words=10, max_words=20),
        ]}))
    return out


@pytest.fixture
def fake_service() -> FakeGenerationService:
    return FakeGenerationService()
