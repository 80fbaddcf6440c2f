"""Local validation of a job definition: botocore structure check + semantic rules"""

from botocore.exceptions import ParamValidationError
from botocore.session import get_session
from botocore.validate import validate_parameters

from batcha.errors import VerifyError


# Allowed MEMORY values (MiB) per Fargate VCPU as (min, max, step)
FARGATE_MEMORY_RANGES = {
    "0.25": (512, 2048, 512),
    "0.5":  (1024, 4096, 1024),
    "1":    (2048, 8192, 1024),
    "2":    (4096, 16384, 1024),
    "4":    (8192, 30720, 1024),
    "8":    (16384, 61440, 4096),
    "16":   (32768, 122880, 8192),
}


def validate_structure(definition: dict) -> None:
    """Check definition against the RegisterJobDefinition input shape; raise VerifyError on mismatch."""
    model = get_session().get_service_model("batch")
    shape = model.operation_model("RegisterJobDefinition").input_shape
    try:
        validate_parameters(definition, shape)
    except ParamValidationError as e:
        raise VerifyError(f"invalid RegisterJobDefinition input: {e}") from e


def validate_input(definition: dict) -> list[str]:
    """Return human-readable validation errors (empty when the definition looks deployable)."""
    errs = []

    if not definition.get("jobDefinitionName"):
        errs.append("jobDefinitionName is required")

    job_type = definition.get("type") or ""
    if not job_type:
        errs.append("type is required")

    is_fargate = "FARGATE" in (definition.get("platformCapabilities") or [])

    if job_type == "container":
        errs.extend(validate_container_properties(definition.get("containerProperties"), is_fargate))
    elif job_type == "multinode":
        if not definition.get("nodeProperties"):
            errs.append('nodeProperties is required when type is "multinode"')

    return errs


def validate_container_properties(cp: dict, is_fargate: bool) -> list[str]:
    if not cp:
        return ['containerProperties is required when type is "container"']

    errs = []
    if not cp.get("image"):
        errs.append("containerProperties.image is required")

    if is_fargate and not cp.get("executionRoleArn"):
        errs.append("containerProperties.executionRoleArn is required for Fargate")

    vcpu = memory = ""
    for r in cp.get("resourceRequirements") or []:
        if r.get("type") == "VCPU":
            vcpu = r.get("value") or ""
        elif r.get("type") == "MEMORY":
            memory = r.get("value") or ""

    if not vcpu:
        errs.append("containerProperties.resourceRequirements must include VCPU")
    else:
        try:
            float(vcpu)
        except ValueError:
            errs.append(f"VCPU value {vcpu!r} is not a valid number")

    if not memory:
        errs.append("containerProperties.resourceRequirements must include MEMORY")
    else:
        try:
            int(memory)
        except ValueError:
            errs.append(f"MEMORY value {memory!r} is not a valid integer")

    if is_fargate and vcpu and memory:
        errs.extend(validate_fargate_resources(vcpu, memory))

    for i, env in enumerate(cp.get("environment") or []):
        if not env.get("name"):
            errs.append(f"containerProperties.environment[{i}].name must not be empty")

    return errs


def validate_fargate_resources(vcpu: str, memory: str) -> list[str]:
    if vcpu not in FARGATE_MEMORY_RANGES:
        allowed = ", ".join(FARGATE_MEMORY_RANGES)
        return [f"Fargate VCPU {vcpu!r} is not valid (allowed: {allowed})"]

    try:
        mem = int(memory)
    except ValueError:
        return []  # reported by validate_container_properties

    lo, hi, step = FARGATE_MEMORY_RANGES[vcpu]
    if not lo <= mem <= hi:
        return [f"Fargate MEMORY {mem} is out of range for VCPU {vcpu} (allowed: {lo}-{hi} MiB)"]
    if (mem - lo) % step:
        return [f"Fargate MEMORY {mem} must be a multiple of {step} (starting from {lo}) for VCPU {vcpu}"]
    return []
