"""Operation functions: register, diff, status, submit/wait, log tailing and init

Every function takes already-built boto3 clients so callers (and tests) decide
how they are constructed.
"""

import logging
import time
from datetime import timedelta
from pathlib import Path
from typing import Callable, Iterator, Optional

import yaml
from botocore.exceptions import BotoCoreError, ClientError

from batcha.config import Settings
from batcha.core.casing import normalize_definition
from batcha.core.definitions import (
    TERMINAL_STATUSES,
    format_definition,
    job_definition_name,
    matches_job_definition,
    normalize_remote_definition,
    pick_latest_revision,
)
from batcha.core.diff import unified_diff
from batcha.core.render import render_definition
from batcha.errors import BatchaError, JobFailedError


logger = logging.getLogger(__name__)

AWS_ERRORS = (BotoCoreError, ClientError)

JOB_DEFINITION_FILE = "job-definition.json"
CONFIG_FILE = "batcha.yml"

WAIT_POLL_SECONDS = 10.0
FOLLOW_POLL_SECONDS = 2.0

# Statuses searched (in order) when locating the latest job for a definition
LIST_JOB_STATUSES = ("RUNNING", "SUCCEEDED", "FAILED", "STARTING", "RUNNABLE", "SUBMITTED", "PENDING")


def load_local_definition(settings: Settings) -> dict:
    """Render the template and normalize its keys to boto3 parameter names."""
    return normalize_definition(render_definition(settings))


def describe_active_definitions(client, name: str) -> list[dict]:
    """Return every ACTIVE revision of the named job definition."""
    defs: list[dict] = []
    kwargs = {"jobDefinitionName": name, "status": "ACTIVE"}
    while True:
        try:
            out = client.describe_job_definitions(**kwargs)
        except AWS_ERRORS as e:
            raise BatchaError(f"failed to describe job definitions: {e}") from e
        defs.extend(out.get("jobDefinitions", []))
        token = out.get("nextToken")
        if not token:
            return defs
        kwargs["nextToken"] = token


def run_register(settings: Settings, client) -> tuple[str, str, int]:
    """Register the local definition unless the latest active revision already matches.

    Returns (status, name, revision) where status is 'registered' or 'unchanged'.
    """
    local = load_local_definition(settings)

    name = local.get("jobDefinitionName")
    if name:
        try:
            defs = describe_active_definitions(client, name)
        except BatchaError as e:
            logger.warning("skipping change detection: %s", e)
            defs = []
        if defs:
            latest = pick_latest_revision(defs)
            if normalize_remote_definition(latest) == local:
                return "unchanged", name, latest["revision"]

    try:
        out = client.register_job_definition(**local)
    except AWS_ERRORS as e:
        raise BatchaError(f"failed to register job definition: {e}") from e
    logger.info("registered %s revision %s", out["jobDefinitionName"], out["revision"])
    return "registered", out["jobDefinitionName"], out["revision"]


def run_diff(settings: Settings, client) -> tuple[str, Optional[dict], str]:
    """Compare the latest active remote revision with the local definition.

    Returns (name, latest, diff). When nothing is active remotely, latest is None and
    the third element is the local definition as JSON instead of a diff.
    """
    local = load_local_definition(settings)
    name = job_definition_name(local)
    local_text = format_definition(local)

    defs = describe_active_definitions(client, name)
    if not defs:
        return name, None, local_text

    latest = pick_latest_revision(defs)
    remote_text = format_definition(normalize_remote_definition(latest))
    return name, latest, unified_diff(remote_text, local_text, "remote", "local")


def describe_status(settings: Settings, client) -> tuple[str, Optional[dict], int]:
    """Return (name, latest active revision or None, number of active revisions)."""
    name = job_definition_name(load_local_definition(settings))
    defs = describe_active_definitions(client, name)
    if not defs:
        return name, None, 0
    return name, pick_latest_revision(defs), len(defs)


def submit_job(
    settings: Settings,
    client,
    job_queue: str = "",
    job_name: str = "",
    parameters: dict[str, str] = None,
    ) -> dict:
    """Submit a job against the latest active revision. Returns the SubmitJob response."""
    queue = job_queue or settings.job_queue
    if not queue:
        raise BatchaError("job queue is required: set job_queue in config or use --job-queue flag")

    name = job_definition_name(load_local_definition(settings))
    defs = describe_active_definitions(client, name)
    if not defs:
        raise BatchaError(f"no active job definition found for {name!r}")
    latest = pick_latest_revision(defs)

    kwargs = {
        "jobDefinition": latest["jobDefinitionArn"],
        "jobQueue": queue,
        "jobName": job_name or name,
    }
    if parameters:
        kwargs["parameters"] = parameters

    try:
        out = client.submit_job(**kwargs)
    except AWS_ERRORS as e:
        raise BatchaError(f"failed to submit job: {e}") from e
    logger.info("submitted job %s (%s)", out.get("jobName"), out.get("jobId"))
    return out


def _describe_jobs(client, job_id: str) -> list[dict]:
    try:
        return client.describe_jobs(jobs=[job_id]).get("jobs", [])
    except AWS_ERRORS as e:
        raise BatchaError(f"failed to describe job: {e}") from e


def describe_job(client, job_id: str) -> dict:
    jobs = _describe_jobs(client, job_id)
    if not jobs:
        raise BatchaError(f"job {job_id} not found")
    return jobs[0]


def is_job_done(client, job_id: str) -> bool:
    """True once the job is SUCCEEDED/FAILED, or no longer known to Batch."""
    jobs = _describe_jobs(client, job_id)
    return not jobs or jobs[0].get("status") in TERMINAL_STATUSES


def wait_for_job(
    client,
    job_id: str,
    poll_interval: float = WAIT_POLL_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    ) -> Iterator[str]:
    """Poll until the job finishes, yielding each new status.

    Returns normally on SUCCEEDED; raises JobFailedError on FAILED.
    """
    last = None
    while True:
        sleep(poll_interval)
        job = describe_job(client, job_id)
        status = job.get("status")
        if status != last:
            yield status
            last = status
        if status == "SUCCEEDED":
            return
        if status == "FAILED":
            raise JobFailedError(f"job failed: {job.get('statusReason', '')}")


def find_latest_job_id(settings: Settings, client, job_queue: str) -> str:
    """Return the most recently created job in job_queue for the configured definition."""
    if not job_queue:
        raise BatchaError(
            "job queue is required to find latest job: set job_queue in config or use --job-queue flag"
        )
    name = job_definition_name(load_local_definition(settings))

    candidates: list[dict] = []
    last_err = None
    for status in LIST_JOB_STATUSES:
        try:
            out = client.list_jobs(jobQueue=job_queue, jobStatus=status, maxResults=5)
        except AWS_ERRORS as e:
            logger.debug("list_jobs(%s) failed: %s", status, e)
            last_err = e
            continue
        for j in out.get("jobSummaryList", []):
            if j.get("jobName") == name or matches_job_definition(j.get("jobDefinition", ""), name):
                candidates.append(j)

    if not candidates:
        if last_err is not None:
            raise BatchaError(f"failed to list jobs in queue {job_queue!r}: {last_err}") from last_err
        raise BatchaError(f"no jobs found for {name!r} in queue {job_queue!r}")

    return max(candidates, key=lambda j: j.get("createdAt", 0))["jobId"]


def iter_log_events(
    logs_client,
    batch_client,
    job_id: str,
    log_group: str,
    log_stream: str,
    follow: bool = False,
    since: Optional[timedelta] = None,
    poll_interval: float = FOLLOW_POLL_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    now: Callable[[], float] = time.time,
    ) -> Iterator[dict]:
    """Yield CloudWatch log events for a job stream.

    Without follow, pages forward until the token stops moving. With follow,
    keeps polling while idle until the job reaches a terminal status.
    """
    kwargs = {"logGroupName": log_group, "logStreamName": log_stream, "startFromHead": True}
    if since:
        kwargs["startTime"] = int((now() - since.total_seconds()) * 1000)
        kwargs["startFromHead"] = False

    prev_token = None
    while True:
        try:
            out = logs_client.get_log_events(**kwargs)
        except AWS_ERRORS as e:
            raise BatchaError(f"failed to get log events: {e}") from e

        events = out.get("events", [])
        yield from events

        token = out.get("nextForwardToken")
        if token == prev_token and not events:
            if not follow or is_job_done(batch_client, job_id):
                return
            sleep(poll_interval)

        prev_token = token
        kwargs = {"logGroupName": log_group, "logStreamName": log_stream, "nextToken": token}


def init_project(client, name: str, region: str, output_dir: Path) -> list[Path]:
    """Write job-definition.json and batcha.yml from the latest active revision of name."""
    defs = describe_active_definitions(client, name)
    if not defs:
        raise BatchaError(f"no active job definition found for {name!r}")
    definition = normalize_remote_definition(pick_latest_revision(defs))

    output_dir.mkdir(parents=True, exist_ok=True)
    files = [
        (output_dir / JOB_DEFINITION_FILE, format_definition(definition) + "\n"),
        (output_dir / CONFIG_FILE, yaml.safe_dump(
            {"region": region, "job_definition": JOB_DEFINITION_FILE}, sort_keys=False,
        )),
    ]
    for path, text in files:
        try:
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise BatchaError(f"failed to write {path}: {e}") from e
    return [path for path, _ in files]
