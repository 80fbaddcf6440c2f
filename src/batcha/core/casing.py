"""Key-casing normalization for rendered job definition documents"""

from typing import Any, Callable


# Maps whose keys are user-defined (env names, tag names, k8s labels) keep their children as-is
SKIP_CHILD_KEYS = frozenset({"options", "parameters", "tags", "labels", "annotations"})


def to_camel_case(s: str) -> str:
    """Lower-case the first character only ('JobDefinitionName' -> 'jobDefinitionName', 'VCPU' -> 'vCPU')."""
    return s[:1].lower() + s[1:]


def walk_keys(value: Any, fn: Callable[[str], str]) -> Any:
    """Return a copy of value with every dict key passed through fn, recursing into lists."""
    if isinstance(value, dict):
        result = {}
        for k, child in value.items():
            if to_camel_case(k) in SKIP_CHILD_KEYS:
                result[fn(k)] = child
            else:
                result[fn(k)] = walk_keys(child, fn)
        return result
    if isinstance(value, list):
        return [walk_keys(child, fn) for child in value]
    return value


def normalize_definition(rendered: dict) -> dict:
    """Convert a rendered template (camelCase or PascalCase) to boto3's camelCase parameter names."""
    return walk_keys(rendered, to_camel_case)
