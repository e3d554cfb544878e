"""GenerationService contract and its AG2-backed implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import autogen

from ..errors import ServiceError, TruncatedOutputError
from ..models import GenerationMode, GenerationOptions, ProjectConfig
from .section_writer import make_section_writer

logger = logging.getLogger(__name__)


class GenerationService(Protocol):
    """Produces text for one bounded request.

    Implementations raise ``ServiceError`` on failure and
    ``TruncatedOutputError`` when the output hit the length limit.
    """

    async def generate(
        self,
        prompt: str,
        context: str,
        mode: GenerationMode,
        options: GenerationOptions,
    ) -> str: ...


class AutogenGenerationService:
    """Calls the model behind an AG2 ``AssistantAgent``, one agent per mode.

    The agent's ``OpenAIWrapper`` client call is blocking, so it runs in a
    worker thread; callers still await one request at a time.
    """

    def __init__(self, config: ProjectConfig) -> None:
        self.config = config
        self._writers: dict[GenerationMode, autogen.AssistantAgent] = {}

    def _writer(self, mode: GenerationMode) -> autogen.AssistantAgent:
        if mode not in self._writers:
            self._writers[mode] = make_section_writer(self.config, mode)
        return self._writers[mode]

    @staticmethod
    def _messages(system_message: str, prompt: str, context: str) -> list[dict[str, str]]:
        user = f"{context}\n\n{prompt}" if context else prompt
        return [
            {"role": "system", "content": system_message},
            {"role": "user", "content": user},
        ]

    def _call(self, prompt: str, context: str, mode: GenerationMode, options: GenerationOptions) -> str:
        writer = self._writer(mode)
        client = writer.client
        if client is None:
            raise ServiceError(f"Writer for mode {mode.value} has no LLM client configured")
        try:
            response = client.create(
                messages=self._messages(writer.system_message, prompt, context),
                max_tokens=options.max_output_units,
            )
        except Exception as e:
            raise ServiceError(f"Generation call failed ({mode.value}): {e}") from e

        text = _response_text(client, response)
        if _finish_reason(response) == "length":
            raise TruncatedOutputError(
                f"Output hit the {options.max_output_units}-token limit ({mode.value})",
                partial_text=text,
            )
        if not text.strip():
            raise ServiceError(f"Empty response from model ({mode.value})")
        return text

    async def generate(
        self,
        prompt: str,
        context: str,
        mode: GenerationMode,
        options: GenerationOptions,
    ) -> str:
        logger.debug("Generating (%s, max %d units)", mode.value, options.max_output_units)
        return await asyncio.to_thread(self._call, prompt, context, mode, options)


def _finish_reason(response: Any) -> str | None:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return None
    return getattr(choices[0], "finish_reason", None)


def _response_text(client: Any, response: Any) -> str:
    extracted = client.extract_text_or_completion_object(response)
    if not extracted:
        return ""
    first = extracted[0]
    if isinstance(first, str):
        return first
    return getattr(first, "content", None) or ""
