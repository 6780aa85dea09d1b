import logging
from functools import lru_cache

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    ReadTimeoutError,
)
from django.conf import settings

from .errors import PermanentTranscoderError, TranscoderError, TransientTranscoderError
from .jobs import JobRequest

logger = logging.getLogger(__name__)

TRANSIENT_ERROR_CODES = {
    "TooManyRequestsException",
    "ThrottlingException",
    "Throttling",
    "InternalServerErrorException",
    "ServiceUnavailableException",
    "RequestTimeout",
}


def _session():
    return boto3.session.Session(
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        region_name=settings.AWS_REGION,
    )


@lru_cache(maxsize=1)
def get_mediaconvert_client():
    """
    MediaConvert client bound to the account-specific endpoint.
    Built once per process; the endpoint is discovered when not configured.
    """
    session = _session()
    config = BotoConfig(retries={"max_attempts": 3, "mode": "standard"})
    endpoint = settings.MEDIACONVERT_ENDPOINT_URL
    if not endpoint:
        probe = session.client("mediaconvert", config=config)
        endpoints = probe.describe_endpoints(MaxResults=1).get("Endpoints") or []
        endpoint = endpoints[0].get("Url") if endpoints else None
        if not endpoint:
            raise TransientTranscoderError("Could not discover MediaConvert endpoint; set MEDIACONVERT_ENDPOINT_URL")
        logger.info("Discovered MediaConvert endpoint %s", endpoint)
    return session.client("mediaconvert", endpoint_url=endpoint, config=config)


@lru_cache(maxsize=1)
def get_sns_client():
    return _session().client("sns")


def classify_error(exc: Exception) -> TranscoderError:
    """Map a boto3/botocore failure onto transient vs permanent."""
    if isinstance(exc, TranscoderError):
        return exc
    if isinstance(exc, ClientError):
        err = exc.response.get("Error", {})
        code = err.get("Code", "")
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
        message = f"{code}: {err.get('Message', str(exc))}"
        if code in TRANSIENT_ERROR_CODES or status >= 500 or status == 429:
            return TransientTranscoderError(message, code=code)
        return PermanentTranscoderError(message, code=code)
    if isinstance(exc, (BotoConnectionError, ReadTimeoutError)):
        return TransientTranscoderError(str(exc), code=type(exc).__name__)
    if isinstance(exc, BotoCoreError):
        return PermanentTranscoderError(str(exc), code=type(exc).__name__)
    return TransientTranscoderError(str(exc), code=type(exc).__name__)


def submit_job(request: JobRequest, client=None) -> str:
    """Submit a job and return its MediaConvert id."""
    try:
        client = client or get_mediaconvert_client()
        resp = client.create_job(**request.to_create_job_kwargs())
    except (ClientError, BotoCoreError) as e:
        raise classify_error(e) from e

    job_id = (resp.get("Job") or {}).get("Id")
    if not job_id:
        raise TransientTranscoderError("MediaConvert accepted the request but returned no job id")
    return str(job_id)


def confirm_subscription(topic_arn: str, token: str, client=None) -> str:
    """Confirm an SNS HTTPS subscription; returns the subscription ARN."""
    client = client or get_sns_client()
    resp = client.confirm_subscription(TopicArn=topic_arn, Token=token, AuthenticateOnUnsubscribe="true")
    return resp.get("SubscriptionArn", "")
