"""
schemadrift CLI - Check and record schema versions of pydantic models.

Commands:
    schemadrift check      Check every model against the snapshot history
    schemadrift record     Record a new schema version for one model
    schemadrift history    List recorded snapshots of one model
    schemadrift show       Print a model's canonical schema
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
import yaml

from schemadrift import __version__
from schemadrift.checker import DriftChecker
from schemadrift.config import SchemaDriftConfig, get_config
from schemadrift.discovery import DiscoveredModel, load_model
from schemadrift.errors import SchemaDriftError, UnresolvedModel
from schemadrift.extractor import SchemaExtractor
from schemadrift.recorder import VersionRecorder
from schemadrift.reflection import PydanticShape
from schemadrift.schema import DriftStatus
from schemadrift.store import SnapshotStore
from schemadrift.strategies import get_strategy


def _configure_logging(config: SchemaDriftConfig) -> None:
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load(config: SchemaDriftConfig, model_path: str) -> DiscoveredModel:
    """Resolve MODEL_PATH (absolute, or relative to cwd or the models dir).

    The file must lie inside the models directory.
    """
    path = Path(model_path)
    if not path.exists():
        path = config.models_path / model_path
    if not path.exists():
        raise click.ClickException(f"Model file not found: {model_path}")
    try:
        entry = load_model(config.models_path, path)
    except UnresolvedModel as exc:
        raise click.ClickException(f"Cannot resolve {model_path}: {exc.reason}") from exc
    if entry.model is None:
        raise click.ClickException(f"Cannot resolve {model_path}: {entry.reason}")
    return entry


@click.group()
@click.version_option(version=__version__)
@click.option("--models-dir", type=click.Path(file_okay=False), help="Directory of model modules")
@click.option("--history-file", type=click.Path(dir_okay=False), help="Snapshot history YAML stream")
@click.option("--registry-file", type=click.Path(dir_okay=False), help="Centralized registry YAML")
@click.option(
    "--strategy",
    type=click.Choice(["inline", "centralized"]),
    help="Where current identifiers are stored",
)
@click.pass_context
def main(
    ctx: click.Context,
    models_dir: Optional[str],
    history_file: Optional[str],
    registry_file: Optional[str],
    strategy: Optional[str],
):
    """schemadrift - Keep model structure and schema identifiers in step."""
    overrides = {
        key: value
        for key, value in {
            "models_dir": models_dir,
            "history_file": history_file,
            "registry_file": registry_file,
            "strategy": strategy,
        }.items()
        if value is not None
    }
    config = get_config(**overrides)
    _configure_logging(config)
    ctx.obj = config


@main.command("check")
@click.option(
    "--exclude",
    "-e",
    multiple=True,
    help="Skip model paths containing this substring (repeatable)",
)
@click.pass_obj
def check_cmd(config: SchemaDriftConfig, exclude: tuple[str, ...]):
    """Check every model's structure against its recorded identifier.

    Exits with status 1 when any model is out of date.

    Example:
        schemadrift --models-dir app/models check --exclude legacy/
    """
    patterns = list(exclude) or config.exclude_patterns
    report = DriftChecker.from_config(config).check_all(patterns)

    for result in report.results:
        if result.status == DriftStatus.SKIPPED:
            continue
        if result.up_to_date and not result.warnings:
            click.echo(f"  ok       {result.model_name}")
            continue
        marker = "ok" if result.up_to_date else "FAIL"
        click.echo(f"  {marker:<8} {result.model_name}")
        if result.status == DriftStatus.MISSING_IDENTIFIER:
            click.echo("           missing schema identifier")
        if result.detail:
            click.echo(f"           {result.detail}")
        for warning in result.warnings:
            click.echo(f"           {warning}")
        for change in result.changes:
            line = f"{change['type']}: {change['field']}"
            if "old" in change:
                line += f" ({change['old']} -> {change['new']})"
            click.echo(f"             - {line}")

    click.echo(
        f"\nModels checked: {len(report.checked)}  "
        f"out of date: {len(report.out_of_date)}  "
        f"skipped: {len(report.skipped)}"
    )

    if not report.up_to_date:
        sys.exit(1)


@main.command("record")
@click.argument("model_path")
@click.option("--force", is_flag=True, help="Record even if the structure is unchanged")
@click.pass_obj
def record_cmd(config: SchemaDriftConfig, model_path: str, force: bool):
    """Record the current structure of the model in MODEL_PATH.

    Appends a snapshot under a new identifier and writes the identifier
    back with the configured strategy.
    """
    entry = _load(config, model_path)
    recorder = VersionRecorder.from_config(config)
    try:
        outcome = recorder.record(
            entry.location, PydanticShape(entry.model), entry.model, force=force
        )
    except SchemaDriftError as exc:
        raise click.ClickException(str(exc)) from exc

    if outcome.recorded:
        click.echo(f"Recorded {outcome.model_name} as {outcome.identifier}")
    else:
        click.echo(f"{outcome.model_name} unchanged; identifier {outcome.identifier}")


@main.command("history")
@click.argument("model_name")
@click.pass_obj
def history_cmd(config: SchemaDriftConfig, model_name: str):
    """List the recorded snapshots of MODEL_NAME, oldest first."""
    snapshots = SnapshotStore(config.history_path).history_for(model_name)
    if not snapshots:
        click.echo(f"No snapshots recorded for {model_name}")
        return
    for index, snapshot in enumerate(snapshots):
        latest = "  (latest)" if index == len(snapshots) - 1 else ""
        click.echo(f"{snapshot.uuid}  {len(snapshot.fields)} field(s){latest}")


@main.command("show")
@click.argument("model_path")
@click.pass_obj
def show_cmd(config: SchemaDriftConfig, model_path: str):
    """Print the canonical schema of the model in MODEL_PATH as YAML."""
    entry = _load(config, model_path)
    try:
        schema = SchemaExtractor().canonicalize(PydanticShape(entry.model))
    except SchemaDriftError as exc:
        raise click.ClickException(str(exc)) from exc
    identifier = get_strategy(config.strategy, config).current_identifier(
        entry.location, entry.model
    )
    document = {
        "uuid": identifier,
        "model_name": entry.location.name,
        "fields": schema.to_document(),
    }
    click.echo(yaml.safe_dump(document, sort_keys=False, default_flow_style=False), nl=False)


if __name__ == "__main__":
    main()
