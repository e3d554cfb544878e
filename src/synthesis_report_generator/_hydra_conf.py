"""Hydra structured config dataclasses.

These mirror the Pydantic ``ProjectConfig`` for Hydra schema validation.
At runtime the Hydra DictConfig is converted to ``ProjectConfig`` via
``cli._to_project_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from hydra.core.config_store import ConfigStore


@dataclass
class AzureConf:
    api_key: str = "${oc.env:AZURE_OPENAI_API_KEY,''}"
    api_version: str = "${oc.env:AZURE_OPENAI_API_VERSION,''}"
    endpoint: str = "${oc.env:AZURE_OPENAI_ENDPOINT,''}"


@dataclass
class ModelConf:
    default: str = "gpt-5.2"
    writer: str | None = None
    search_writer: str | None = None
    refiner: str | None = None
    overrides: dict[str, Any] = field(default_factory=dict)


@dataclass
class QualityConf:
    words: int = 12000
    substages: int = 7
    figures: int = 20
    references: int = 40


@dataclass
class SrgConf:
    # --- Dispatch + CLI-only fields ---
    mode: str = "run"
    verbose: bool = False
    quiet: bool = False
    session_id: str | None = None

    # --- ProjectConfig fields (1:1 mapping) ---
    project_name: str = "synthesis-report"
    output_dir: str = "output/"
    storage_dir: str = "output/analyses/"
    inputs_file: str | None = None

    figure_dir: str = "figures/"
    figure_search_dirs: list[str] = field(default_factory=list)
    figure_files: list[str] | None = None
    overview_sentinel: str = "Evidence_Analysis"
    figure_base_path: str = "figures"

    azure: AzureConf = field(default_factory=AzureConf)
    models: ModelConf = field(default_factory=ModelConf)
    timeout: int = 120
    seed: int = 42
    temperature: float = 0.4

    chunking: str = "chunked"
    max_output_ceiling: int = 16000
    tokens_per_word: float = 1.5
    context_char_budget: int = 6000
    continuation_chars: int = 600
    on_truncation: str = "fail"
    refinement_min_ratio: float = 0.9

    strategy_label: str = "Multi-substage progressive synthesis (A-G)"
    reference_limit: int = 50
    quality: QualityConf = field(default_factory=QualityConf)

    persist: bool = False
    report_title: str | None = None
    enable_refinement: bool = False


# Keys present in SrgConf that are NOT part of ProjectConfig.
CLI_ONLY_KEYS = frozenset({"mode", "verbose", "quiet", "session_id"})


def register_configs() -> None:
    """Register the structured config schema with Hydra's ConfigStore."""
    cs = ConfigStore.instance()
    cs.store(name="srg_schema", node=SrgConf)
