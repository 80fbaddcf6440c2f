"""Parsing of Go-style duration strings ('1h', '30m', '1h30m', '500ms')"""

import re
from datetime import timedelta


_UNITS = {
    "us": timedelta(microseconds=1),
    "µs": timedelta(microseconds=1),
    "ms": timedelta(milliseconds=1),
    "s":  timedelta(seconds=1),
    "m":  timedelta(minutes=1),
    "h":  timedelta(hours=1),
}
_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(us|µs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """Return the timedelta for text; raises ValueError on anything malformed."""
    s = text.strip()
    if s == "0":
        return timedelta(0)
    if not s:
        raise ValueError("invalid duration: empty string")
    pos, total = 0, timedelta(0)
    while pos < len(s):
        m = _PART_RE.match(s, pos)
        if not m:
            raise ValueError(f"invalid duration: {text!r}")
        total += float(m.group(1)) * _UNITS[m.group(2)]
        pos = m.end()
    return total
