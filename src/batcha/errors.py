"""Exception hierarchy raised by batcha operations"""


class BatchaError(Exception):
    """Base class for user-facing batcha failures."""


class ConfigError(BatchaError, ValueError):
    """Config file could not be read, parsed, or validated."""


class RenderError(BatchaError):
    """Job definition template failed to render into a JSON object."""


class TFStateError(BatchaError):
    """Terraform state could not be loaded or an address did not resolve."""


class VerifyError(BatchaError):
    """Local validation of the job definition failed."""


class JobFailedError(BatchaError):
    """A submitted job reached the FAILED state."""


class DiffFound(BatchaError):
    """Local and remote job definitions differ."""

    def __init__(self, message: str = "differences found"):
        super().__init__(message)
