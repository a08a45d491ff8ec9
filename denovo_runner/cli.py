from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from denovo_runner.core.config import (
    AppConfig,
    ExecutionConfig,
    OutputConfig,
    ProcessingConfig,
    ToolSettings,
)
from denovo_runner.orchestration.runner import SequencingRunner
from denovo_runner.services.records import RecordIndex
from denovo_runner.tools import build_default_registry
from denovo_runner.utils.logging_utils import LOG_FORMAT, configure_logging
from denovo_runner.utils.params import (
    get_spectrum_files,
    parse_tool_parameters,
    validate_positive_int,
)
from denovo_runner.utils.progress import ConsoleReporter

logging.basicConfig(
    level=logging.WARNING,
    format=LOG_FORMAT,
)
logger = logging.getLogger("denovo_runner.cli")

PARAMETERS_BACKUP = "denovo_parameters.json"


def _parse_tool_folders(values) -> dict[str, Path]:
    folders: dict[str, Path] = {}
    for item in values:
        name, sep, folder = item.partition("=")
        if not sep or not name.strip() or not folder.strip():
            raise click.BadParameter(f"Expected name=folder, got {item!r}", param_hint="--tool")
        folders[name.strip().lower()] = Path(folder.strip())
    return folders


def _write_parameters_backup(app_cfg: AppConfig) -> None:
    payload = {
        name: {
            "folder": str(settings.folder),
            "executable": settings.executable,
            "parameters": settings.parameters,
        }
        for name, settings in app_cfg.enabled_tools().items()
    }
    path = app_cfg.output.output_root / PARAMETERS_BACKUP
    path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
    logger.debug("Saved tool parameters to %s", path)


@click.group()
@click.version_option(version="0.1.0")
def cli():
    """DeNovoRunner CLI.

    Runs external de novo peptide sequencing tools over MGF spectrum files,
    splitting the spectra across threads for tools that are single-threaded.
    """


@cli.command()
@click.argument("spectrum_path", type=click.Path(exists=True))
@click.option(
    "--tool",
    "-t",
    "tools",
    multiple=True,
    required=True,
    help="Enable a tool as name=install_folder (e.g. pepnovo=/opt/PepNovo). Repeatable.",
)
@click.option(
    "--executable",
    "executables",
    multiple=True,
    help="Override a tool executable as name=file_name. Repeatable.",
)
@click.option(
    "--param",
    "-p",
    "params",
    multiple=True,
    help="Tool parameter as tool.key=value (e.g. pnovo.param_file=pNovo.param). Repeatable.",
)
@click.option("--output", "-o", type=click.Path(), default="./output", show_default=True)
@click.option(
    "--chunk-dir",
    type=click.Path(),
    default=None,
    help="Folder for spectrum chunks; defaults to the folder of each spectrum file.",
)
@click.option(
    "--threads",
    type=int,
    default=None,
    callback=validate_positive_int,
    help="Worker threads; defaults to CPU count.",
)
@click.option(
    "--max-wait-hours",
    type=click.FloatRange(min=0, min_open=True),
    default=12.0,
    show_default=True,
    help="Upper bound on the wait for the jobs of one spectrum file.",
)
@click.option("--recursive", is_flag=True, help="Recursively search directories for MGF files.")
@click.option(
    "--tool-output/--no-tool-output",
    default=True,
    show_default=True,
    help="Echo the output of the tools to the console.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def sequence(
    spectrum_path: str,
    tools: tuple[str, ...],
    executables: tuple[str, ...],
    params: tuple[str, ...],
    output: str,
    chunk_dir: str | None,
    threads: int | None,
    max_wait_hours: float,
    recursive: bool,
    tool_output: bool,
    verbose: bool,
):
    """Run the selected de novo sequencing tools over spectrum files."""
    configure_logging(verbose)

    registry = build_default_registry()
    folders = _parse_tool_folders(tools)
    overrides = {name: Path(f).name for name, f in _parse_tool_folders(executables).items()}
    parameters = parse_tool_parameters(params)
    for name in {*folders, *overrides, *parameters}:
        if name not in registry.available():
            raise click.BadParameter(
                f"Unknown tool '{name}'. Available: {', '.join(registry.available())}"
            )
    for name in {*overrides, *parameters} - set(folders):
        logger.warning("Ignoring settings for %s, the tool is not enabled", name)

    try:
        app_cfg = AppConfig(
            processing=ProcessingConfig(input_path=Path(spectrum_path), recursive=recursive),
            output=OutputConfig(
                output_root=Path(output),
                chunk_dir=Path(chunk_dir) if chunk_dir else None,
            ),
            execution=ExecutionConfig(threads=threads, max_wait_hours=max_wait_hours),
            tools={
                name: ToolSettings(
                    folder=folder,
                    executable=overrides.get(name),
                    parameters=parameters.get(name, {}),
                )
                for name, folder in folders.items()
            },
        ).validated()
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    spectrum_files = [Path(f) for f in get_spectrum_files(spectrum_path, recursive=recursive)]
    pnovo = app_cfg.enabled_tools().get("pnovo")
    if pnovo is not None and len(spectrum_files) > 1:
        param_file = str(pnovo.parameters.get("param_file", ""))
        if "{" not in param_file:
            raise click.ClickException(
                "pNovo+ reads its spectrum file from param_file; use a per-file template "
                "such as pnovo.param_file=params/{stem}.param to process several files"
            )
    records = RecordIndex.from_files(spectrum_files)
    reporter = ConsoleReporter(show_progress=not verbose, echo_tool_output=tool_output)
    runner = SequencingRunner(
        config=app_cfg,
        registry=registry,
        records=records,
        preparation=[("saving the parameters", lambda: _write_parameters_backup(app_cfg))],
    )

    try:
        outcome = runner.start_sequencing(spectrum_files, reporter)
    except KeyboardInterrupt:
        runner.cancel_sequencing(reporter)
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)

    click.echo(
        f"Sequencing {outcome.status.value} in {reporter.elapsed_text()}: "
        f"{len(outcome.result_files)} result file(s), {len(outcome.job_errors)} failed job(s)"
    )
    if verbose:
        for path in outcome.result_files:
            click.echo(f"[OK] {path}")
        for description, err in outcome.job_errors:
            click.echo(f"[FAIL] {description}: {err}", err=True)
    if not outcome.succeeded:
        sys.exit(1)


@cli.command()
def info():
    """Display supported tools and output structure."""
    registry = build_default_registry()
    click.echo("Spectrum formats: .mgf")
    for name in registry.available():
        profile = registry.get(name)
        mode = "internal threads" if profile.internal_parallelism else "one process per chunk"
        click.echo(
            f"{name}: {profile.display_name} ({mode}), output {profile.output_pattern}, "
            f"executable {profile.default_executable()}"
        )
    click.echo(
        "Outputs: one result file per spectrum file and tool under the output folder; "
        f"tool parameters are saved to {PARAMETERS_BACKUP}."
    )


def main():
    try:
        cli()
    except click.ClickException as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)
    except Exception as e:  # noqa: BLE001
        click.echo(f"Unexpected error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
