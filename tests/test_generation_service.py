"""Tests for agents/generation_service.py and agents/section_writer.py."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from synthesis_report_generator.agents import generation_service as gs
from synthesis_report_generator.agents.section_writer import SYSTEM_PROMPT, make_section_writer
from synthesis_report_generator.errors import ServiceError, TruncatedOutputError
from synthesis_report_generator.models import GenerationMode, GenerationOptions, ProjectConfig


def _response(finish_reason: str = "stop"):
    return SimpleNamespace(choices=[SimpleNamespace(finish_reason=finish_reason)])


@pytest.fixture
def writer(monkeypatch):
    agent = MagicMock()
    agent.system_message = "SYSTEM"
    agent.client.create.return_value = _response()
    agent.client.extract_text_or_completion_object.return_value = ["generated text"]
    monkeypatch.setattr(gs, "make_section_writer", lambda config, mode: agent)
    return agent


def _generate(service, mode=GenerationMode.THINKING_STRUCTURED, units=4000):
    return asyncio.run(service.generate("PROMPT", "CONTEXT", mode, GenerationOptions(max_output_units=units)))


class TestAutogenGenerationService:
    def test_returns_text(self, writer):
        assert _generate(gs.AutogenGenerationService(ProjectConfig())) == "generated text"

    def test_messages_and_limit(self, writer):
        _generate(gs.AutogenGenerationService(ProjectConfig()), units=1234)
        kwargs = writer.client.create.call_args.kwargs
        assert kwargs["max_tokens"] == 1234
        assert kwargs["messages"][0] == {"role": "system", "content": "SYSTEM"}
        assert kwargs["messages"][1]["content"] == "CONTEXT\n\nPROMPT"

    def test_length_finish_is_truncation(self, writer):
        writer.client.create.return_value = _response("length")
        with pytest.raises(TruncatedOutputError) as exc_info:
            _generate(gs.AutogenGenerationService(ProjectConfig()))
        assert exc_info.value.partial_text == "generated text"

    def test_client_error_wrapped(self, writer):
        writer.client.create.side_effect = RuntimeError("429 Too Many Requests")
        with pytest.raises(ServiceError, match="429") as exc_info:
            _generate(gs.AutogenGenerationService(ProjectConfig()))
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_empty_response_is_error(self, writer):
        writer.client.extract_text_or_completion_object.return_value = [""]
        with pytest.raises(ServiceError):
            _generate(gs.AutogenGenerationService(ProjectConfig()))

    def test_missing_client(self, writer):
        writer.client = None
        with pytest.raises(ServiceError):
            _generate(gs.AutogenGenerationService(ProjectConfig()))

    def test_writer_cached_per_mode(self, monkeypatch):
        made: list[GenerationMode] = []

        def fake_make(config, mode):
            made.append(mode)
            agent = MagicMock()
            agent.client.create.return_value = _response()
            agent.client.extract_text_or_completion_object.return_value = ["ok"]
            return agent

        monkeypatch.setattr(gs, "make_section_writer", fake_make)
        service = gs.AutogenGenerationService(ProjectConfig())
        _generate(service)
        _generate(service)
        _generate(service, mode=GenerationMode.THINKING_SEARCH)
        assert made == [GenerationMode.THINKING_STRUCTURED, GenerationMode.THINKING_SEARCH]


class TestSectionWriterAgent:
    def test_make_section_writer_returns_agent(self):
        agent = make_section_writer(ProjectConfig(), GenerationMode.THINKING_SEARCH)
        assert agent.name == "SectionWriter_thinking_search"
        assert "literature" in agent.system_message

    def test_system_prompt_mentions_figures(self):
        assert "Figure N" in SYSTEM_PROMPT

    def test_search_mode_uses_search_model(self):
        config = ProjectConfig(models={"default": "gpt-4", "writer": "gpt-5", "search_writer": "gpt-5-search"})
        agent = make_section_writer(config, GenerationMode.THINKING_SEARCH)
        assert agent.llm_config["config_list"][0]["model"] == "gpt-5-search"
