"""Root test configuration: environment isolation, sample project, fake AWS clients"""

import json
from pathlib import Path

import pytest


TEMPLATE = """\
{
  "jobDefinitionName": "{{ env('TEST_JOB_NAME', 'example-job') }}",
  "type": "container",
  "platformCapabilities": ["FARGATE"],
  "containerProperties": {
    "image": "{{ env('TEST_IMAGE', 'nginx:latest') }}",
    "executionRoleArn": "arn:aws:iam::123456789012:role/ecsTaskExecutionRole",
    "resourceRequirements": [
      {"type": "VCPU", "value": "0.25"},
      {"type": "MEMORY", "value": "512"}
    ],
    "environment": [
      {"name": "APP_ENV", "value": "{{ env('APP_ENV', 'dev') }}"}
    ]
  },
  "tags": {"project": "batcha"}
}
"""

ARN_PREFIX = "arn:aws:batch:ap-northeast-1:123456789012:job-definition"

_ISOLATED_ENV = (
    "AWS_REGION", "AWS_DEFAULT_REGION", "BATCHA_REGION", "BATCHA_JOB_DEFINITION",
    "BATCHA_JOB_QUEUE", "BATCHA_LOG_LEVEL", "TEST_JOB_NAME", "TEST_IMAGE", "APP_ENV",
)


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch):
    """Keep the developer's AWS / batcha environment out of every test."""
    for name in _ISOLATED_ENV:
        monkeypatch.delenv(name, raising=False)


def write_project(root: Path, template: str = TEMPLATE, config: str = None) -> Path:
    """Write batcha.yml + job-definition.json under root and return the config path."""
    root.mkdir(parents=True, exist_ok=True)
    (root / "job-definition.json").write_text(template)
    cfg = root / "batcha.yml"
    cfg.write_text(config or "region: ap-northeast-1\njob_definition: job-definition.json\njob_queue: default-queue\n")
    return cfg


@pytest.fixture(name="config_path")
def config_path_fixture(tmp_path):
    return write_project(tmp_path / "project")


def remote_definition(local: dict, revision: int = 1, **overrides) -> dict:
    """Build a DescribeJobDefinitions entry from a local definition."""
    name = local["jobDefinitionName"]
    d = json.loads(json.dumps(local))
    d.update({
        "jobDefinitionArn": f"{ARN_PREFIX}/{name}:{revision}",
        "revision": revision,
        "status": "ACTIVE",
        "containerOrchestrationType": "ECS",
    })
    d.update(overrides)
    return d


class FakeBatchClient:
    """In-memory stand-in for a boto3 batch client; records every call."""

    def __init__(self, definitions=None, jobs=None, job_summaries=None, status_sequence=None):
        self.definitions = list(definitions or [])
        self.jobs = dict(jobs or {})
        self.job_summaries = dict(job_summaries or {})   # status -> [summary]
        self.status_sequence = list(status_sequence or [])
        self.calls = []

    def describe_job_definitions(self, **kwargs):
        self.calls.append(("describe_job_definitions", kwargs))
        name = kwargs.get("jobDefinitionName")
        return {"jobDefinitions": [d for d in self.definitions if d["jobDefinitionName"] == name]}

    def register_job_definition(self, **kwargs):
        self.calls.append(("register_job_definition", kwargs))
        revision = max((d["revision"] for d in self.definitions), default=0) + 1
        name = kwargs["jobDefinitionName"]
        return {
            "jobDefinitionName": name,
            "jobDefinitionArn": f"{ARN_PREFIX}/{name}:{revision}",
            "revision": revision,
        }

    def submit_job(self, **kwargs):
        self.calls.append(("submit_job", kwargs))
        return {"jobName": kwargs["jobName"], "jobId": "job-0001"}

    def describe_jobs(self, **kwargs):
        self.calls.append(("describe_jobs", kwargs))
        job_id = kwargs["jobs"][0]
        job = self.jobs.get(job_id)
        if job is None:
            return {"jobs": []}
        if self.status_sequence:
            job = {**job, "status": self.status_sequence.pop(0)}
        return {"jobs": [job]}

    def list_jobs(self, **kwargs):
        self.calls.append(("list_jobs", kwargs))
        return {"jobSummaryList": self.job_summaries.get(kwargs["jobStatus"], [])}

    def called(self, method: str) -> list[dict]:
        return [kwargs for name, kwargs in self.calls if name == method]


class FakeLogsClient:
    """Returns the queued get_log_events pages in order, repeating the last one."""

    def __init__(self, pages):
        self.pages = list(pages)
        self.calls = []

    def get_log_events(self, **kwargs):
        self.calls.append(kwargs)
        if len(self.pages) > 1:
            return self.pages.pop(0)
        return self.pages[0]


@pytest.fixture(name="make_project")
def make_project_fixture():
    return write_project


@pytest.fixture(name="make_remote")
def make_remote_fixture():
    return remote_definition


@pytest.fixture(name="fake_batch")
def fake_batch_fixture():
    """Factory for FakeBatchClient instances."""
    return FakeBatchClient


@pytest.fixture(name="fake_logs")
def fake_logs_fixture():
    """Factory for FakeLogsClient instances."""
    return FakeLogsClient
