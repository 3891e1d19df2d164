"""Command line interface entry point."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from kape_runner.command_composition import PlanFormatError
from kape_runner.configuration import (
    DEFAULT_CONFIG_FILENAME,
    ConfigurationError,
    ContainerFormat,
    RunnerSettings,
    build_run_config,
    format_version,
    load_runner_settings,
    parse_version,
    write_placeholder_configuration,
)
from kape_runner.run_execution import RunRequest, execute_collection_run
from kape_runner.run_logging import configure_run_logging
from kape_runner.run_supervision import RunStatus, run_detached_worker
from kape_runner.tool_provisioning import BinaryProvisioner, ProvisioningError

TOKEN_ENVVAR = "KAPE_RUNNER_SAS_TOKEN"


class CliError(Exception):
    """Custom CLI error."""


def _settings(ctx: click.Context) -> RunnerSettings:
    config_path = ctx.obj.get("config_path") if ctx.obj else None
    try:
        return load_runner_settings(config_path)
    except ConfigurationError as exc:
        raise CliError(str(exc)) from exc


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="kape-runner")
@click.option(
    "--config",
    "config_path",
    required=False,
    type=click.Path(path_type=str),
    help="Path to the YAML runner configuration file",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """Provision, run, package and upload KAPE collections."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command(name="generate-config")
@click.option(
    "--output",
    "output_path",
    required=False,
    default=DEFAULT_CONFIG_FILENAME,
    show_default=True,
    type=click.Path(path_type=str),
    help="Path to the YAML runner configuration template to write",
)
def generate_config(output_path: str) -> None:
    """Generate a runner configuration template with guidance comments."""
    try:
        resolved_output = write_placeholder_configuration(output_path)
    except (FileExistsError, OSError) as exc:
        raise CliError(str(exc)) from exc
    click.echo(str(resolved_output))


@cli.command(name="provision")
@click.option("--min-version", "min_version", required=False, help="Minimum tool version")
@click.pass_context
def provision(ctx: click.Context, min_version: str | None) -> None:
    """Install or refresh the tool package without running a collection."""
    settings = _settings(ctx)
    configure_run_logging(settings.logging, settings.work_dir)
    try:
        required = parse_version(min_version) if min_version else None
        installation = BinaryProvisioner(settings.provisioning, settings.work_dir).ensure(required)
    except ValueError as exc:
        raise CliError(str(exc)) from exc
    except ProvisioningError as exc:
        raise CliError(f"{RunStatus.FAILED_PROVISIONING.value}: {exc}") from exc
    click.echo(f"{installation.install_dir} {format_version(installation.version)}")


@cli.command(name="run")
@click.option(
    "--source-volume",
    "source_volume",
    default="C:",
    show_default=True,
    help="Volume to collect from",
)
@click.option("--targets", required=True, help="Comma-separated target names")
@click.option("--modules", required=False, help="Comma-separated module names")
@click.option(
    "--container",
    "container_format",
    required=False,
    type=click.Choice([item.value for item in ContainerFormat], case_sensitive=False),
    help="Package target output in a container image",
)
@click.option("--password", "archive_password", required=False, help="Archive password")
@click.option("--storage-account", required=False, help="Remote blob storage account")
@click.option("--storage-container", required=False, help="Remote blob container")
@click.option(
    "--storage-token",
    required=False,
    envvar=TOKEN_ENVVAR,
    help=f"Remote access (SAS) token; also read from {TOKEN_ENVVAR}",
)
@click.option(
    "--background",
    is_flag=True,
    default=False,
    help="Run the pipeline in a detached worker and return after the grace period.",
)
@click.option("--min-version", "min_version", required=False, help="Minimum tool version")
@click.option(
    "--skip-privilege-check",
    is_flag=True,
    default=False,
    help="Do not require administrative privileges.",
)
@click.pass_context
def run_collection(  # pylint: disable=too-many-arguments
    ctx: click.Context,
    source_volume: str,
    targets: str,
    modules: str | None,
    container_format: str | None,
    archive_password: str | None,
    storage_account: str | None,
    storage_container: str | None,
    storage_token: str | None,
    background: bool,
    min_version: str | None,
    skip_privilege_check: bool,
) -> None:
    """Collect targets (and modules), compress, optionally upload, then clean up."""
    settings = _settings(ctx)
    try:
        config = build_run_config(
            source_volume=source_volume,
            targets=targets,
            modules=modules,
            container_format=container_format,
            archive_password=archive_password,
            storage_account=storage_account,
            storage_container=storage_container,
            storage_token=storage_token,
            background=background,
            minimum_version=min_version,
        )
    except ConfigurationError as exc:
        raise CliError(str(exc)) from exc

    log_path = configure_run_logging(settings.logging, settings.work_dir)
    outcome = execute_collection_run(
        RunRequest(config=config, settings=settings, require_admin=not skip_privilege_check)
    )
    if not outcome.status.succeeded and outcome.status.is_terminal:
        raise CliError(f"{outcome.status.value}: {outcome.diagnostic} (log: {log_path})")
    if outcome.status is RunStatus.DETACHED:
        click.echo(f"{outcome.diagnostic} Log: {log_path}")
    else:
        click.echo(str(outcome.remote_location or outcome.archive_path))


@cli.command(name="supervise", hidden=True)
@click.option("--plan", "plan_path", required=True, type=click.Path(path_type=Path))
@click.option("--outcome", "outcome_path", required=True, type=click.Path(path_type=Path))
@click.pass_context
def supervise(ctx: click.Context, plan_path: Path, outcome_path: Path) -> None:
    """Execute a serialized run plan (used by background runs)."""
    settings = _settings(ctx)
    configure_run_logging(settings.logging, settings.work_dir, console=False)
    try:
        outcome = run_detached_worker(plan_path, outcome_path)
    except PlanFormatError as exc:
        raise CliError(str(exc)) from exc
    if not outcome.status.succeeded:
        raise CliError(f"{outcome.status.value}: {outcome.diagnostic}")


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for console_scripts wiring."""
    argv = argv if argv is not None else sys.argv[1:]
    try:
        cli.main(args=list(argv), standalone_mode=False)
    except CliError as exc:
        click.echo(str(exc), err=True)
        return 1
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except click.Abort:
        click.echo("Aborted.", err=True)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
