"""CLI command implementations"""

import os
from contextlib import contextmanager
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
from botocore.exceptions import BotoCoreError, ClientError

from batcha.aws import make_batch_client, make_logs_client
from batcha.config import REGION_ENV_FALLBACKS, Settings, load_config
from batcha.core.casing import normalize_definition
from batcha.core.definitions import extract_log_info, format_definition
from batcha.core.pipeline import (
    describe_job,
    describe_status,
    find_latest_job_id,
    init_project,
    iter_log_events,
    load_local_definition,
    run_diff,
    run_register,
    submit_job,
    wait_for_job,
)
from batcha.core.render import render_definition
from batcha.core.utils.duration import parse_duration
from batcha.core.verify import validate_input, validate_structure
from batcha.errors import BatchaError, ConfigError, DiffFound
from batcha.log import setup_logging


ConfigPath = Annotated[str, typer.Option("--config", help="Path to config YAML file")]


def _fail(msg: str, cause: Exception = None) -> NoReturn:
    """Print a user-friendly error to stderr and exit 1."""
    typer.echo(f"Error: {msg}", err=True)
    if cause:
        typer.echo(f"  {cause}", err=True)
    raise typer.Exit(1)


def _settings(path: str, overrides: dict = None) -> Settings:
    """Load config with standard CLI error handling."""
    try:
        return load_config(path, overrides=overrides)
    except ConfigError as e:
        _fail(str(e))


@contextmanager
def _handle_errors():
    """Translate batcha and AWS SDK errors into a clean exit 1."""
    try:
        yield
    except DiffFound:
        raise typer.Exit(1)
    except BatchaError as e:
        _fail(str(e))
    except (BotoCoreError, ClientError) as e:
        _fail("AWS request failed", e)


def _format_timestamp(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).astimezone().isoformat(timespec="seconds")


def _parse_parameters(params: list[str]) -> dict[str, str]:
    parsed = {}
    for p in params:
        key, sep, value = p.partition("=")
        if not sep:
            _fail(f"invalid parameter format {p!r}, expected key=value")
        parsed[key] = value
    return parsed


def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging to stderr")] = False,
    ):
    """Declarative AWS Batch Job Definition deployment tool."""
    setup_logging(verbose)


def render_cmd(config: ConfigPath):
    """Render and print the job definition template."""
    settings = _settings(config)
    with _handle_errors():
        typer.echo(format_definition(load_local_definition(settings)))


def register_cmd(
    config: ConfigPath,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Render template and print JSON without registering")] = False,
    ):
    """Register an AWS Batch Job Definition."""
    if dry_run:
        render_cmd(config)
        return
    settings = _settings(config)
    with _handle_errors():
        status, name, revision = run_register(settings, make_batch_client(settings.region))
    if status == "unchanged":
        typer.echo(f"No changes detected. Skip registration. (current revision: {revision})")
    else:
        typer.echo(f"Registered: {name} revision {revision}")


def diff_cmd(config: ConfigPath):
    """Show differences between local and remote job definition (exit 1 when they differ)."""
    settings = _settings(config)
    with _handle_errors():
        name, latest, text = run_diff(settings, make_batch_client(settings.region))
        if latest is None:
            typer.echo(f"No active job definition found for {name!r}. The local definition will be newly registered.")
            typer.echo(text)
            raise DiffFound()
        if not text:
            typer.echo("No differences found.")
            return
        typer.echo(text, nl=False)
        raise DiffFound()


def status_cmd(config: ConfigPath):
    """Show the current status of the job definition on AWS."""
    settings = _settings(config)
    with _handle_errors():
        name, latest, active = describe_status(settings, make_batch_client(settings.region))
    if latest is None:
        typer.echo(f"No active job definition found for {name!r}.")
        return

    for label, key in [("Name:", "jobDefinitionName"), ("ARN:", "jobDefinitionArn"),
                       ("Revision:", "revision"), ("Status:", "status"), ("Type:", "type")]:
        typer.echo(f"{label:<10}{latest.get(key, '')}")
    if cp := latest.get("containerProperties"):
        typer.echo(f"{'Image:':<10}{cp.get('image', '')}")
        for r in cp.get("resourceRequirements") or []:
            typer.echo(f"{r.get('type', '') + ':':<9} {r.get('value', '')}")
    typer.echo(f"Active revisions: {active}")


def run_cmd(
    config: ConfigPath,
    job_queue: Annotated[Optional[str], typer.Option("--job-queue", help="AWS Batch job queue name (overrides config)")] = None,
    job_name: Annotated[Optional[str], typer.Option("--job-name", help="Job name (defaults to job definition name)")] = None,
    parameter: Annotated[Optional[list[str]], typer.Option("--parameter", help="Parameter overrides (key=value, repeatable)")] = None,
    wait: Annotated[bool, typer.Option("--wait", help="Wait for the job to complete")] = False,
    ):
    """Submit a job using the latest active job definition."""
    settings = _settings(config)
    params = _parse_parameters(parameter or [])
    with _handle_errors():
        client = make_batch_client(settings.region)
        out = submit_job(settings, client, job_queue or "", job_name or "", params)
        typer.echo(f"Submitted job: {out['jobName']} (ID: {out['jobId']})")
        if not wait:
            return
        typer.echo(f"Waiting for job {out['jobId']}...")
        for status in wait_for_job(client, out["jobId"]):
            typer.echo(f"  {status}")
        typer.echo("Job succeeded.")


def logs_cmd(
    config: ConfigPath,
    job_id: Annotated[Optional[str], typer.Option("--job-id", help="AWS Batch job ID (if omitted, finds the latest job)")] = None,
    job_queue: Annotated[Optional[str], typer.Option("--job-queue", help="AWS Batch job queue name (overrides config)")] = None,
    follow: Annotated[bool, typer.Option("--follow", "-f", help="Follow logs in real time")] = False,
    since: Annotated[Optional[str], typer.Option("--since", help="Show logs since duration (e.g. 1h, 30m)")] = None,
    ):
    """Fetch CloudWatch logs for a Batch job."""
    settings = _settings(config)
    since_delta = None
    if since:
        try:
            since_delta = parse_duration(since)
        except ValueError as e:
            _fail(f"invalid --since duration: {e}")

    with _handle_errors():
        batch = make_batch_client(settings.region)
        if not job_id:
            job_id = find_latest_job_id(settings, batch, job_queue or settings.job_queue)
        job = describe_job(batch, job_id)
        log_group, log_stream = extract_log_info(job)

        typer.echo(f"Job: {job.get('jobName', '')} ({job.get('jobId', job_id)})")
        typer.echo(f"Log: {log_group} / {log_stream}")
        typer.echo("---")

        events = iter_log_events(
            make_logs_client(settings.region), batch, job_id, log_group, log_stream,
            follow=follow, since=since_delta,
        )
        for event in events:
            typer.echo(f"{_format_timestamp(event.get('timestamp', 0))}  {event.get('message', '')}")


def verify_cmd(config: ConfigPath):
    """Validate the job definition template locally (no AWS calls)."""
    settings = _settings(config)
    try:
        rendered = render_definition(settings)
    except BatchaError as e:
        _fail(f"render: {e}")
    typer.echo("OK: template rendered successfully")

    definition = normalize_definition(rendered)
    with _handle_errors():
        validate_structure(definition)
    typer.echo("OK: valid RegisterJobDefinition input structure")

    errs = validate_input(definition)
    if errs:
        for e in errs:
            typer.echo(f"NG: {e}")
        _fail(f"verification failed with {len(errs)} error(s)")

    typer.echo("OK: all validations passed")
    typer.echo("Verify OK")


def init_cmd(
    job_definition_name: Annotated[str, typer.Option("--job-definition-name", help="Name of the AWS Batch job definition to fetch")],
    region: Annotated[Optional[str], typer.Option("--region", help="AWS region (falls back to AWS_REGION)")] = None,
    output: Annotated[str, typer.Option("--output", help="Output directory for generated files")] = ".",
    ):
    """Generate config and job definition from an existing AWS Batch definition."""
    region = region or next((os.environ[n] for n in REGION_ENV_FALLBACKS if os.environ.get(n)), "")
    with _handle_errors():
        paths = init_project(make_batch_client(region), job_definition_name, region, Path(output))
    for p in paths:
        typer.echo(f"Created {p}")


def version_cmd():
    """Print version."""
    try:
        v = version("batcha")
    except PackageNotFoundError:
        v = "dev"
    typer.echo(f"batcha {v}")
