"""CLI entry point using Hydra.

Usage examples:
  srg --config-dir examples/demo --config-name config mode=run inputs_file=inputs.yaml
  srg --config-dir examples/demo --config-name config mode=run persist=true enable_refinement=true
  srg mode=catalog figure_dir=figures/
  srg --config-dir . --config-name config mode=plan chunking=single
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any

import hydra
from omegaconf import DictConfig, OmegaConf
from rich.table import Table

from ._hydra_conf import CLI_ONLY_KEYS, register_configs
from .config import apply_azure_fallbacks, load_inputs
from .errors import PipelineError
from .logging_config import RichCallbacks, console, create_progress, setup_logging
from .models import PipelineOptions, ProjectConfig, ResearchContext

register_configs()

# ---------------------------------------------------------------------------
# Hydra DictConfig → Pydantic ProjectConfig bridge
# ---------------------------------------------------------------------------


def _to_project_config(cfg: DictConfig) -> ProjectConfig:
    """Convert a Hydra *DictConfig* to a Pydantic ``ProjectConfig``.

    CLI-only keys (``mode``, ``verbose``, etc.) are stripped before validation.
    Azure credential env-var fallbacks are applied afterwards.
    """
    container: dict[str, Any] = OmegaConf.to_container(cfg, resolve=True)  # type: ignore[assignment]
    for key in CLI_ONLY_KEYS:
        container.pop(key, None)
    config = ProjectConfig.model_validate(container)
    return apply_azure_fallbacks(config)


def _get_config_dir() -> Path:
    """Extract ``--config-dir`` from *sys.argv* (before Hydra consumes it).

    Falls back to the current working directory.
    """
    for i, arg in enumerate(sys.argv):
        if arg == "--config-dir" and i + 1 < len(sys.argv):
            return Path(sys.argv[i + 1])
        if arg.startswith("--config-dir="):
            return Path(arg.split("=", 1)[1])
    return Path.cwd()


def _resolve(path: str, config_dir: Path) -> Path:
    p = Path(path)
    return p if p.is_absolute() else config_dir / p


def _load_inputs_or_exit(config: ProjectConfig, config_dir: Path) -> tuple[ResearchContext, dict, list[str]]:
    if not config.inputs_file:
        console.print("[red]inputs_file is required for this mode[/]")
        sys.exit(1)
    try:
        return load_inputs(_resolve(config.inputs_file, config_dir))
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]{e}[/]")
        sys.exit(1)


def _with_config_dir(config: ProjectConfig, config_dir: Path) -> ProjectConfig:
    """Resolve relative directories against the config directory."""
    return config.model_copy(update={
        "output_dir": str(_resolve(config.output_dir, config_dir)),
        "storage_dir": str(_resolve(config.storage_dir, config_dir)),
        "figure_dir": str(_resolve(config.figure_dir, config_dir)),
        "figure_search_dirs": [str(_resolve(d, config_dir)) for d in config.figure_search_dirs],
    })


# ---------------------------------------------------------------------------
# Mode handlers
# ---------------------------------------------------------------------------


def _run_mode(cfg: DictConfig) -> None:
    config_dir = _get_config_dir()
    config = _with_config_dir(_to_project_config(cfg), config_dir)
    research_context, parameters, stage_results = _load_inputs_or_exit(config, config_dir)

    from .pipeline import Pipeline

    pipeline = Pipeline(config, callbacks=RichCallbacks())
    options = PipelineOptions(
        persist=config.persist,
        title=config.report_title,
        enable_refinement=config.enable_refinement,
        session_id=cfg.get("session_id"),
    )

    console.print("[bold]Starting multi-substage generation...[/]")
    with create_progress() as progress:
        task = progress.add_task("Initializing", total=100)

        def on_progress(label: str, percent: int) -> None:
            progress.update(task, description=label, completed=percent)

        try:
            outcome = asyncio.run(pipeline.generate(
                parameters, research_context, stage_results, on_progress, options,
            ))
        except PipelineError as e:
            console.print(f"\n[bold red]Generation failed:[/] {e}")
            sys.exit(1)

    report = outcome.report
    out_dir = Path(config.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_file = out_dir / "report.html"
    out_file.write_text(report.document_html, encoding="utf-8")

    console.print("\n[bold green]Report generated.[/]")
    console.print(f"  Output: {out_file}")
    console.print(f"  Words: {report.total_word_count:,}  Figures: {len(report.figure_catalog)}  "
                  f"References: {len(report.references)}")
    m = report.quality_metrics
    console.print(f"  Quality: rigor {m.academic_rigor:.0f}, depth {m.content_depth:.0f}, "
                  f"figures {m.figure_integration:.0f}, references {m.reference_quality:.0f}")
    if outcome.analysis_id:
        console.print(f"  Stored as: {outcome.analysis_id}")
    if outcome.persist_warning:
        console.print(f"  [yellow]Not stored:[/] {outcome.persist_warning}")


def _catalog_mode(cfg: DictConfig) -> None:
    config = _to_project_config(cfg)

    from .tools.figure_catalog import build_figure_catalog, default_figure_filenames

    filenames = config.figure_files if config.figure_files is not None else default_figure_filenames()
    catalog = build_figure_catalog(filenames, overview_sentinel=config.overview_sentinel)

    table = Table(title=f"Figure catalog ({len(catalog)} figures)")
    table.add_column("#", justify="right")
    table.add_column("File")
    table.add_column("Title")
    table.add_column("Category")
    table.add_column("Placement")
    for f in catalog:
        table.add_row(str(f.figure_number), f.filename, f.title, f.category.value, f.placement.value)
    console.print(table)


def _plan_mode(cfg: DictConfig) -> None:
    config_dir = _get_config_dir()
    config = _with_config_dir(_to_project_config(cfg), config_dir)
    if config.inputs_file:
        research_context, parameters, stage_results = _load_inputs_or_exit(config, config_dir)
    else:
        research_context, parameters, stage_results = ResearchContext(topic=config.project_name), {}, []

    from .pipeline import Pipeline

    pipeline = Pipeline(config, callbacks=RichCallbacks())
    requests = pipeline.plan_requests(research_context, parameters, stage_results)

    table = Table(title=f"Generation schedule ({len(requests)} calls)")
    table.add_column("Substage")
    table.add_column("Chunk", justify="right")
    table.add_column("Mode")
    table.add_column("Max units", justify="right")
    table.add_column("Context chars", justify="right")
    for r in requests:
        context_chars = sum(len(s.text) for s in r.template.context_slots)
        table.add_row(
            r.substage.value,
            f"{r.chunk_index + 1}/{r.chunk_count}",
            r.mode.value,
            str(r.template.max_output_units),
            str(context_chars),
        )
    console.print(table)


_MODE_DISPATCH: dict[str, Any] = {
    "run": _run_mode,
    "catalog": _catalog_mode,
    "plan": _plan_mode,
}


# ---------------------------------------------------------------------------
# Hydra entry point
# ---------------------------------------------------------------------------


@hydra.main(config_path="conf", config_name="config", version_base=None)
def hydra_entry(cfg: DictConfig) -> None:
    """Hydra-managed CLI entry point."""
    setup_logging(verbose=cfg.get("verbose", False), quiet=cfg.get("quiet", False))

    mode = cfg.get("mode", "run")
    handler = _MODE_DISPATCH.get(mode)
    if handler is None:
        console.print(f"[red]Unknown mode: {mode!r}. Choose from: {', '.join(_MODE_DISPATCH)}[/]")
        sys.exit(1)

    handler(cfg)


def main() -> None:
    """Package entry point (``[project.scripts]`` target)."""
    hydra_entry()  # pylint: disable=no-value-for-parameter
