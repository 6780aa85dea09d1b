import base64
import datetime
from unittest.mock import Mock

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.x509.oid import NameOID

from encoding import sns
from encoding.models import ContentRecord
from encoding.renditions import AudioStream, Manifest, MuxStream, RenditionLadder, VideoStream

TOPIC_ARN = "arn:aws:sns:us-east-1:123456789012:transcoder-events"
ROLE_ARN = "arn:aws:iam::123456789012:role/MediaConvertRole"
CERT_URL = "https://sns.us-east-1.amazonaws.com/SimpleNotificationService-0000000000000000.pem"
NOTIFICATION_SECRET = "forwarder-secret"


@pytest.fixture(autouse=True)
def encoding_settings(settings):
    settings.ENCODING_SOURCE_BUCKET = "media-test"
    settings.ENCODING_SOURCE_PREFIX = "uploads/"
    settings.ENCODING_DESTINATION_PREFIX = "s3://media-test/encoded/"
    settings.ENCODING_NOTIFICATION_TOPIC_ARN = TOPIC_ARN
    settings.ENCODING_NOTIFICATION_SECRET = NOTIFICATION_SECRET
    settings.MEDIACONVERT_ROLE_ARN = ROLE_ARN
    settings.MEDIACONVERT_QUEUE_ARN = None
    settings.ENCODING_SUBMIT_MAX_RETRIES = 2
    settings.ENCODING_SUBMIT_RETRY_BACKOFF = 1
    return settings


@pytest.fixture
def published(monkeypatch):
    """Change events that would have been dispatched to the handler."""
    events = []
    monkeypatch.setattr("encoding.store.publish_change", events.append)
    return events


@pytest.fixture
def submit(monkeypatch):
    mock = Mock(return_value="job-123")
    monkeypatch.setattr("encoding.handlers.submit_job", mock)
    return mock


@pytest.fixture
def small_ladder():
    return RenditionLadder(
        version="test-1",
        video_streams=(VideoStream("video-360p", 640, 360, bitrate=800_000, frame_rate=30),),
        audio_streams=(AudioStream("audio-64k", bitrate=64_000),),
        mux_streams=(MuxStream("hls-360p", video="video-360p", audio="audio-64k"),),
        manifests=(Manifest("index", mux_streams=("hls-360p",), segment_seconds=4),),
    )


@pytest.fixture
def make_record(published):
    def _make(**fields):
        return ContentRecord.objects.create(name=fields.pop("name", "Miata NA"), **fields)
    return _make


class SnsSigner:
    """Signs messages the way SNS does, with a throwaway key and certificate."""

    def __init__(self):
        self.key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "sns.amazonaws.com")])
        now = datetime.datetime.now(datetime.timezone.utc)
        self.certificate = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(self.key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - datetime.timedelta(days=1))
            .not_valid_after(now + datetime.timedelta(days=1))
            .sign(self.key, hashes.SHA256())
        )

    def sign(self, message: dict, version: str = "1", cert_url: str = CERT_URL) -> dict:
        signed = {**message, "SignatureVersion": version, "SigningCertURL": cert_url}
        signature = self.key.sign(
            sns.string_to_sign(signed).encode("utf-8"),
            padding.PKCS1v15(),
            sns.SIGNATURE_HASHES[version](),
        )
        signed["Signature"] = base64.b64encode(signature).decode("ascii")
        return signed


@pytest.fixture(scope="session")
def _sns_signer():
    return SnsSigner()


@pytest.fixture
def sns_signer(_sns_signer, monkeypatch):
    """An SnsSigner whose certificate is what load_certificate hands back."""
    monkeypatch.setattr("encoding.sns.load_certificate", lambda url: _sns_signer.certificate)
    return _sns_signer
