"""
Signature checks for SNS HTTP(S) deliveries.

SNS signs a canonical string built from a fixed set of message fields and
names the certificate it signed with in SigningCertURL. That URL is only
trusted when it points at the SNS endpoint of the topic's own region.
"""
import base64
import binascii
import logging
from functools import lru_cache
from urllib.parse import urlsplit

import requests
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from django.conf import settings

from .errors import NotificationSignatureError

logger = logging.getLogger(__name__)

NOTIFICATION_FIELDS = ("Message", "MessageId", "Subject", "Timestamp", "TopicArn", "Type")
SUBSCRIPTION_FIELDS = ("Message", "MessageId", "SubscribeURL", "Timestamp", "Token", "TopicArn", "Type")
SIGNATURE_HASHES = {"1": hashes.SHA1, "2": hashes.SHA256}


def string_to_sign(message: dict) -> str:
    fields = NOTIFICATION_FIELDS if message.get("Type") == "Notification" else SUBSCRIPTION_FIELDS
    # Subject is the only optional field; it is left out when SNS omitted it
    return "".join(f"{name}\n{message[name]}\n" for name in fields if message.get(name) is not None)


def signing_cert_host(topic_arn: str) -> str:
    """'arn:aws:sns:eu-west-1:...' -> 'sns.eu-west-1.amazonaws.com'"""
    parts = topic_arn.split(":")
    if len(parts) < 6 or parts[0] != "arn" or parts[2] != "sns" or not parts[3]:
        raise NotificationSignatureError(f"not an SNS topic ARN: {topic_arn!r}")
    domain = "amazonaws.com.cn" if parts[1] == "aws-cn" else "amazonaws.com"
    return f"sns.{parts[3]}.{domain}"


def check_cert_url(url: str, topic_arn: str) -> None:
    parts = urlsplit(url or "")
    if (
        parts.scheme != "https"
        or parts.hostname != signing_cert_host(topic_arn)
        or parts.port not in (None, 443)
        or not parts.path.endswith(".pem")
    ):
        raise NotificationSignatureError(f"untrusted SigningCertURL {url!r}")


@lru_cache(maxsize=16)
def load_certificate(url: str) -> x509.Certificate:
    """Download and parse a signing certificate. SNS rotates these rarely, so they are cached."""
    resp = requests.get(url, timeout=settings.ENCODING_SNS_CERT_TIMEOUT)
    resp.raise_for_status()
    return x509.load_pem_x509_certificate(resp.content)


def verify_message(message: dict) -> None:
    """
    Raise NotificationSignatureError unless ``message`` was signed by SNS.

    requests.RequestException propagates when the certificate cannot be
    fetched; the caller should answer with a retryable status.
    """
    version = message.get("SignatureVersion")
    if version not in SIGNATURE_HASHES:
        raise NotificationSignatureError(f"unsupported SignatureVersion {version!r}")

    cert_url = message.get("SigningCertURL", "")
    check_cert_url(cert_url, message.get("TopicArn", ""))

    try:
        signature = base64.b64decode(message.get("Signature") or "", validate=True)
    except binascii.Error as e:
        raise NotificationSignatureError("Signature is not valid base64") from e
    if not signature:
        raise NotificationSignatureError("message is not signed")

    try:
        cert = load_certificate(cert_url)
    except ValueError as e:
        raise NotificationSignatureError(f"unreadable signing certificate at {cert_url}") from e

    try:
        cert.public_key().verify(
            signature,
            string_to_sign(message).encode("utf-8"),
            padding.PKCS1v15(),
            SIGNATURE_HASHES[version](),
        )
    except InvalidSignature as e:
        raise NotificationSignatureError("signature does not match message") from e
    logger.debug("Verified SNS message %s", message.get("MessageId"))
