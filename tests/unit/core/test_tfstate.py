"""Unit tests for core/tfstate.py"""

import io
import json

import pytest
from botocore.exceptions import ClientError

from batcha.core.tfstate import TFState, parse_address
from batcha.errors import TFStateError


STATE = {
    "version": 4,
    "resources": [
        {
            "mode": "managed", "type": "aws_iam_role", "name": "exec",
            "instances": [{"attributes": {"arn": "arn:aws:iam::123456789012:role/exec", "tags": {"Team": "data"}}}],
        },
        {
            "mode": "managed", "type": "aws_subnet", "name": "private",
            "instances": [
                {"index_key": 0, "attributes": {"id": "subnet-aaa"}},
                {"index_key": 1, "attributes": {"id": "subnet-bbb"}},
            ],
        },
        {
            "mode": "data", "type": "aws_caller_identity", "name": "current",
            "instances": [{"attributes": {"account_id": "123456789012"}}],
        },
        {
            "module": "module.network", "mode": "managed", "type": "aws_security_group", "name": "batch",
            "instances": [{"attributes": {"id": "sg-123", "ingress": [{"from_port": 443}]}}],
        },
    ],
}


@pytest.fixture(name="state")
def state_fixture():
    return TFState(STATE)


def test_parse_address():
    assert parse_address('module.net.aws_subnet.private[1].id') == [
        ("module", []), ("net", []), ("aws_subnet", []), ("private", [1]), ("id", []),
    ]
    assert parse_address('aws_ecr_repository.repo["app"].url') == [
        ("aws_ecr_repository", []), ("repo", ["app"]), ("url", []),
    ]


@pytest.mark.parametrize("address", ["aws_x..y", "aws_x.y[", "aws_x y"])
def test_parse_address_invalid(address):
    with pytest.raises(TFStateError, match="invalid tfstate address"):
        parse_address(address)


@pytest.mark.parametrize("address,expected", [
    ("aws_iam_role.exec.arn", "arn:aws:iam::123456789012:role/exec"),
    ("aws_iam_role.exec.tags.Team", "data"),
    ("aws_subnet.private[0].id", "subnet-aaa"),
    ("aws_subnet.private[1].id", "subnet-bbb"),
    ("data.aws_caller_identity.current.account_id", "123456789012"),
    ("module.network.aws_security_group.batch.id", "sg-123"),
    ("module.network.aws_security_group.batch.ingress[0].from_port", 443),
])
def test_lookup(state, address, expected):
    assert state.lookup(address) == expected


def test_lookup_whole_instance(state):
    """Without an attribute path the full attribute map is returned."""
    assert state.lookup("data.aws_caller_identity.current") == {"account_id": "123456789012"}


@pytest.mark.parametrize("address", [
    "aws_iam_role.missing.arn",
    "aws_iam_role.exec.nope",
    "aws_subnet.private[5].id",
    "aws_security_group.batch.id",
    "aws_iam_role.exec.tags.Missing",
])
def test_lookup_not_found(state, address):
    with pytest.raises(TFStateError, match="is not found in tfstate"):
        state.lookup(address)


def test_lookup_too_short(state):
    with pytest.raises(TFStateError, match="invalid tfstate address"):
        state.lookup("aws_iam_role")


def test_load_relative_path(tmp_path):
    """Relative paths resolve against base_dir."""
    (tmp_path / "terraform.tfstate").write_text(json.dumps(STATE))
    state = TFState.load("terraform.tfstate", tmp_path)
    assert state.lookup("aws_subnet.private[0].id") == "subnet-aaa"


def test_load_file_url(tmp_path):
    path = tmp_path / "terraform.tfstate"
    path.write_text(json.dumps(STATE))
    assert TFState.load(f"file://{path}").lookup("aws_iam_role.exec.tags.Team") == "data"


def test_load_missing_file(tmp_path):
    with pytest.raises(TFStateError, match="failed to load tfstate"):
        TFState.load("missing.tfstate", tmp_path)


def test_load_invalid_json(tmp_path):
    (tmp_path / "bad.tfstate").write_text("{not json")
    with pytest.raises(TFStateError, match="failed to parse tfstate"):
        TFState.load("bad.tfstate", tmp_path)


def test_load_unsupported_scheme():
    with pytest.raises(TFStateError, match="unsupported tfstate url scheme"):
        TFState.load("https://example.com/terraform.tfstate")


class _FakeS3:
    def __init__(self, body: bytes = b"", error: Exception = None):
        self.body = body
        self.error = error
        self.calls = []

    def get_object(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return {"Body": io.BytesIO(self.body)}


def test_load_s3():
    """s3:// URLs are fetched with GetObject on bucket + key."""
    s3 = _FakeS3(json.dumps(STATE).encode())
    state = TFState.load("s3://my-bucket/env/prod/terraform.tfstate", s3_client_factory=lambda: s3)
    assert s3.calls == [{"Bucket": "my-bucket", "Key": "env/prod/terraform.tfstate"}]
    assert state.lookup("aws_iam_role.exec.arn").endswith("role/exec")


def test_load_s3_error():
    error = ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
    with pytest.raises(TFStateError, match="failed to load tfstate"):
        TFState.load("s3://b/k", s3_client_factory=lambda: _FakeS3(error=error))
