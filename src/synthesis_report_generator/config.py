"""Configuration loader and LLM config builder.

Reads project settings from a YAML config file with ``${ENV_VAR}`` interpolation
and turns them into AG2 ``llm_config`` dicts per generation role.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .models import AzureConfig, ModelEndpointOverride, ProjectConfig, ResearchContext

load_dotenv()

# ---------------------------------------------------------------------------
# YAML loading with ${ENV_VAR} interpolation
# ---------------------------------------------------------------------------

_ENV_RE = re.compile(r"\$\{([^}]+)\}")


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${ENV_VAR}`` references in strings."""
    if isinstance(value, str):
        def _replace(m: re.Match) -> str:
            return os.environ.get(m.group(1), "")
        return _ENV_RE.sub(_replace, value)
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(v) for v in value]
    return value


def apply_azure_fallbacks(config: ProjectConfig) -> ProjectConfig:
    """Fill empty azure credentials from environment variables and normalise endpoint."""
    if not config.azure.api_key:
        config.azure.api_key = os.getenv("AZURE_OPENAI_API_KEY", "")
    if not config.azure.api_version:
        config.azure.api_version = os.getenv("AZURE_OPENAI_API_VERSION", "")
    if not config.azure.endpoint:
        config.azure.endpoint = os.getenv("AZURE_OPENAI_ENDPOINT", "")
    config.azure.endpoint = config.azure.endpoint.rstrip("/")
    return config


def _read_yaml(path: str | Path, kind: str) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"{kind} file not found: {p}")
    with open(p, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_config(config_path: str | Path) -> ProjectConfig:
    """Load a ``ProjectConfig`` from a YAML file.

    Environment variables referenced as ``${VAR_NAME}`` are resolved.
    If ``azure`` fields are empty after resolution, they fall back to
    well-known environment variables (``AZURE_OPENAI_*``).
    """
    raw = _read_yaml(config_path, "Config")
    config = ProjectConfig.model_validate(_resolve_env_vars(raw))
    return apply_azure_fallbacks(config)


def load_inputs(inputs_path: str | Path) -> tuple[ResearchContext, dict[str, Any], list[str]]:
    """Load the upstream artifacts for one run.

    The file holds ``research_context`` (topic, field, objectives),
    an optional free-form ``parameters`` mapping and ``stage_results``,
    a list of upstream stage texts.
    """
    raw = _read_yaml(inputs_path, "Inputs")
    if "research_context" not in raw:
        raise ValueError(f"Inputs file {inputs_path} has no 'research_context' block")
    context = ResearchContext.model_validate(raw["research_context"])
    parameters = dict(raw.get("parameters") or {})
    stage_results = [str(s) for s in (raw.get("stage_results") or [])]
    return context, parameters, stage_results


# ---------------------------------------------------------------------------
# LLM config builder
# ---------------------------------------------------------------------------

def _is_azure_openai_endpoint(endpoint: str) -> bool:
    """Return True for Azure OpenAI endpoints, False for Azure AI Model Inference."""
    lower = endpoint.lower()
    return "openai.azure.com" in lower or "cognitiveservices.azure.com" in lower


def _build_single_entry(
    model: str,
    azure: AzureConfig,
    override: ModelEndpointOverride | None = None,
) -> dict[str, Any]:
    """Build a single AG2 config_list entry for the given model.

    An override with ``api_type`` is used as-is with its endpoint as
    ``base_url``. Otherwise Azure OpenAI endpoints get deployment-based
    routing and anything else is treated as OpenAI-compatible.
    """
    api_key = azure.api_key
    api_version = azure.api_version
    endpoint = azure.endpoint
    forced_api_type: str | None = None

    if override:
        endpoint = override.endpoint.rstrip("/")
        if override.api_key:
            api_key = override.api_key
        if override.api_version:
            api_version = override.api_version
        forced_api_type = override.api_type

    entry: dict[str, Any] = {
        "model": model,
        "api_key": api_key,
    }

    if forced_api_type:
        entry["api_type"] = forced_api_type
        entry["base_url"] = endpoint
    elif endpoint and _is_azure_openai_endpoint(endpoint):
        entry.update({
            "api_type": "azure",
            "azure_endpoint": endpoint,
            "api_version": api_version,
            "azure_deployment": model,
        })
    elif endpoint:
        entry["base_url"] = endpoint
    return entry


def build_role_llm_config(role: str, config: ProjectConfig) -> dict[str, Any]:
    """Return an AG2-compatible ``llm_config`` dict for the given *role*.

    Role mapping:
    - ``writer`` / ``thinking-structured`` → models.writer (or default)
    - ``search_writer`` / ``thinking-search`` → models.search_writer (or writer, or default)
    - ``refiner`` / ``thinking-only`` → models.refiner (or writer, or default)
    """
    models = config.models
    role_map: dict[str, str | None] = {
        "writer": models.writer,
        "thinking-only": models.refiner or models.writer,
        "thinking-structured": models.writer,
        "search_writer": models.search_writer or models.writer,
        "thinking-search": models.search_writer or models.writer,
        "refiner": models.refiner or models.writer,
    }
    chosen = role_map.get(role.lower()) or models.default
    override = models.overrides.get(chosen)
    entry = _build_single_entry(chosen, config.azure, override=override)
    return {
        "config_list": [entry],
        "timeout": config.timeout,
        "seed": config.seed,
        "temperature": config.temperature,
    }
