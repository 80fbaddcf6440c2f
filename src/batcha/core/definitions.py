"""Helpers over job definition and job detail dicts as returned by boto3"""

import json
from typing import Any

from batcha.errors import BatchaError


DEFAULT_LOG_GROUP = "/aws/batch/job"

# AWS-managed fields that never belong in a user-managed template
REMOTE_MANAGED_KEYS = (
    "jobDefinitionArn",
    "revision",
    "status",
    "containerOrchestrationType",
)

TERMINAL_STATUSES = frozenset({"SUCCEEDED", "FAILED"})


def job_definition_name(definition: dict) -> str:
    """Return jobDefinitionName or raise when it is missing or empty."""
    name = definition.get("jobDefinitionName")
    if not isinstance(name, str) or not name:
        raise BatchaError("jobDefinitionName is required in job definition")
    return name


def pick_latest_revision(definitions: list[dict]) -> dict:
    """Return the definition with the highest revision (first one wins on ties)."""
    latest = definitions[0]
    for d in definitions[1:]:
        if d.get("revision", 0) > latest.get("revision", 0):
            latest = d
    return latest


def normalize_remote_definition(definition: dict) -> dict:
    """Strip AWS-managed keys so a described definition compares against a local one."""
    return {k: v for k, v in definition.items() if k not in REMOTE_MANAGED_KEYS}


def format_definition(definition: Any) -> str:
    return json.dumps(definition, indent=2, sort_keys=True, ensure_ascii=False)


def matches_job_definition(arn: str, name: str) -> bool:
    """True if arn ('...:job-definition/NAME:REV') names the given job definition."""
    _, sep, rest = arn.rpartition("/")
    if not sep:
        return False
    return rest.split(":", 1)[0] == name


def extract_log_info(job: dict) -> tuple[str, str]:
    """Return (log_group, log_stream) for a job detail dict."""
    container = job.get("container") or {}
    stream = container.get("logStreamName") or ""
    if not stream:
        raise BatchaError(
            f"no log stream found for job {job.get('jobId', '')} "
            f"(job may not have started yet, status: {job.get('status', '')})"
        )
    options = (container.get("logConfiguration") or {}).get("options") or {}
    return options.get("awslogs-group", DEFAULT_LOG_GROUP), stream
