"""Terraform state lookup backing the tfstate() template function"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from botocore.exceptions import BotoCoreError, ClientError

from batcha.aws import make_s3_client
from batcha.errors import TFStateError


logger = logging.getLogger(__name__)

# One dotted segment: a name followed by any number of [0] / ["key"] indexes
_SEGMENT_RE = re.compile(r'([A-Za-z0-9_\-]+)((?:\[(?:\d+|"[^"]*")\])*)')
_INDEX_RE = re.compile(r'\[(?:(\d+)|"([^"]*)")\]')


def _parse_indexes(text: str) -> list[int | str]:
    return [int(num) if num else key for num, key in _INDEX_RE.findall(text)]


def parse_address(address: str) -> list[tuple[str, list[int | str]]]:
    """Split 'module.a.aws_x.y[0].attr' into [(name, [indexes]), ...]."""
    segments = []
    pos = 0
    while pos < len(address):
        m = _SEGMENT_RE.match(address, pos)
        if not m:
            raise TFStateError(f"invalid tfstate address {address!r}")
        segments.append((m.group(1), _parse_indexes(m.group(2))))
        pos = m.end()
        if pos < len(address):
            if address[pos] != ".":
                raise TFStateError(f"invalid tfstate address {address!r}")
            pos += 1
    return segments


def _format_index(idx: int | str) -> str:
    return f"[{idx}]" if isinstance(idx, int) else f'["{idx}"]'


class TFState:
    """In-memory view over a Terraform state (format version 4) document."""

    def __init__(self, state: dict):
        self.resources = state.get("resources") or []

    @classmethod
    def load(cls, url: str, base_dir: Path = Path("."), s3_client_factory: Optional[Callable] = None) -> "TFState":
        """Load state from a local path, file:// URL, or s3://bucket/key."""
        parsed = urlparse(url)
        if parsed.scheme == "s3":
            if s3_client_factory is None:
                s3_client_factory = make_s3_client
            logger.debug("fetching tfstate from %s", url)
            try:
                obj = s3_client_factory().get_object(Bucket=parsed.netloc, Key=parsed.path.lstrip("/"))
                body = obj["Body"].read()
            except (BotoCoreError, ClientError) as e:
                raise TFStateError(f"failed to load tfstate from {url}: {e}") from e
        elif parsed.scheme in ("", "file"):
            path = Path(parsed.path if parsed.scheme == "file" else url)
            if not path.is_absolute():
                path = base_dir / path
            try:
                body = path.read_bytes()
            except OSError as e:
                raise TFStateError(f"failed to load tfstate from {url}: {e}") from e
        else:
            raise TFStateError(f"unsupported tfstate url scheme {parsed.scheme!r} in {url}")

        try:
            return cls(json.loads(body))
        except ValueError as e:
            raise TFStateError(f"failed to parse tfstate from {url}: {e}") from e

    def _find_instance(self, module: str, mode: str, rtype: str, name: str, index) -> Optional[dict]:
        for r in self.resources:
            if (r.get("module", ""), r.get("mode"), r.get("type"), r.get("name")) != (module, mode, rtype, name):
                continue
            instances = r.get("instances") or []
            for inst in instances:
                if inst.get("index_key") == index:
                    return inst.get("attributes") or {}
            break
        return None

    def lookup(self, address: str) -> Any:
        """Resolve [module.M.]*[data.]TYPE.NAME[idx][.attr...] against the state."""
        segments = parse_address(address)

        modules = []
        while len(segments) >= 2 and segments[0][0] == "module":
            mod_name, mod_idx = segments[1]
            modules.append("module." + mod_name + "".join(_format_index(i) for i in mod_idx))
            segments = segments[2:]

        mode = "managed"
        if segments and segments[0][0] == "data":
            mode = "data"
            segments = segments[1:]

        if len(segments) < 2:
            raise TFStateError(f"invalid tfstate address {address!r}")
        (rtype, _), (name, idx) = segments[0], segments[1]
        index = idx[0] if idx else None

        value = self._find_instance(".".join(modules), mode, rtype, name, index)
        if value is None:
            raise TFStateError(f"{address} is not found in tfstate")

        for attr, indexes in segments[2:]:
            try:
                value = value[attr]
                for i in indexes:
                    value = value[i]
            except (KeyError, IndexError, TypeError):
                raise TFStateError(f"{address} is not found in tfstate") from None
        return value
