"""boto3 client construction for AWS Batch, CloudWatch Logs and S3"""

import logging

import boto3


logger = logging.getLogger(__name__)


def make_session(region: str = "") -> boto3.session.Session:
    """Return a boto3 Session; an empty region defers to the default credential/config chain."""
    return boto3.session.Session(region_name=region or None)


def make_batch_client(region: str = ""):
    logger.debug("creating batch client (region=%r)", region)
    return make_session(region).client("batch")


def make_logs_client(region: str = ""):
    logger.debug("creating logs client (region=%r)", region)
    return make_session(region).client("logs")


def make_s3_client(region: str = ""):
    return make_session(region).client("s3")
