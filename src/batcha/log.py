"""Logging setup for the CLI: stderr handler, level from --verbose or BATCHA_LOG_LEVEL"""

import logging
import os
import sys


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVEL_ENV = "BATCHA_LOG_LEVEL"
NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")


def setup_logging(verbose: bool = False) -> None:
    """Configure the root logger once per CLI invocation."""
    if verbose:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(os.getenv(LOG_LEVEL_ENV, "WARNING").upper())
        if not isinstance(level, int):
            level = logging.WARNING

    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)

    # AWS SDK debug output is only useful when explicitly asked for
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)
