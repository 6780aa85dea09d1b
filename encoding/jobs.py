"""
Builds MediaConvert job requests from the rendition ladder.

No network calls here; the result of JobRequest.to_create_job_kwargs() is
handed unchanged to the mediaconvert client's create_job.
"""
import hashlib
from dataclasses import dataclass, field

from .errors import MalformedSourceError
from .renditions import AudioStream, Manifest, RenditionLadder, VideoStream

AUDIO_SELECTOR = "Audio Selector 1"


@dataclass(frozen=True)
class JobRequest:
    record_id: str
    input_uri: str
    output_uri: str
    role_arn: str
    settings: dict
    user_metadata: dict = field(default_factory=dict)
    queue_arn: str | None = None
    client_request_token: str = ""

    def to_create_job_kwargs(self) -> dict:
        kwargs = {
            "Role": self.role_arn,
            "Settings": self.settings,
            "UserMetadata": self.user_metadata,
            "ClientRequestToken": self.client_request_token,
        }
        if self.queue_arn:
            kwargs["Queue"] = self.queue_arn
        return kwargs


def output_location(destination_prefix: str, record_id) -> str:
    """Per-record output folder, so outputs of different records never collide."""
    return f"{destination_prefix.rstrip('/')}/{record_id}/"


def manifest_uri(destination_prefix: str, record_id, ladder: RenditionLadder) -> str:
    """Location of the first manifest's master playlist."""
    return f"{output_location(destination_prefix, record_id)}{ladder.manifests[0].key}.m3u8"


def request_token(record_id, input_uri: str, ladder_version: str) -> str:
    """
    Deterministic ClientRequestToken. MediaConvert returns the original job
    for a token it has already seen, so resubmits do not start a second job.
    """
    digest = hashlib.sha256(f"{record_id}|{input_uri}|{ladder_version}".encode("utf-8"))
    return digest.hexdigest()  # 64 chars, the API maximum


def _video_description(v: VideoStream) -> dict:
    h264 = {
        "RateControlMode": v.rate_control,
        "CodecProfile": v.profile,
        "CodecLevel": "AUTO",
        "FramerateControl": "SPECIFIED",
        "FramerateNumerator": v.frame_rate,
        "FramerateDenominator": 1,
        "GopSize": v.gop_seconds,
        "GopSizeUnits": "SECONDS",
        "SceneChangeDetect": "TRANSITION_DETECTION",
    }
    if v.rate_control == "QVBR":
        h264["MaxBitrate"] = v.bitrate
        h264["QvbrSettings"] = {"QvbrQualityLevel": v.quality_level}
    else:
        h264["Bitrate"] = v.bitrate
    return {
        "Width": v.width,
        "Height": v.height,
        "ScalingBehavior": "DEFAULT",
        "CodecSettings": {"Codec": v.codec, "H264Settings": h264},
    }


def _audio_description(a: AudioStream) -> dict:
    return {
        "AudioSourceName": AUDIO_SELECTOR,
        "CodecSettings": {
            "Codec": a.codec,
            "AacSettings": {
                "Bitrate": a.bitrate,
                "CodingMode": "CODING_MODE_2_0" if a.channels == 2 else "CODING_MODE_1_0",
                "SampleRate": a.sample_rate,
            },
        },
    }


def _output_group(manifest: Manifest, ladder: RenditionLadder, destination: str) -> dict:
    outputs = []
    for key in manifest.mux_streams:
        mux = ladder.mux(key)
        outputs.append({
            "NameModifier": f"_{mux.key}",
            "ContainerSettings": {"Container": mux.container, "M3u8Settings": {}},
            "VideoDescription": _video_description(ladder.video(mux.video)),
            "AudioDescriptions": [_audio_description(ladder.audio(mux.audio))],
        })
    return {
        "Name": f"HLS {manifest.key}",
        "OutputGroupSettings": {
            "Type": "HLS_GROUP_SETTINGS",
            "HlsGroupSettings": {
                "Destination": f"{destination}{manifest.key}",
                "SegmentLength": manifest.segment_seconds,
                "MinSegmentLength": 0,
                "SegmentControl": "SEGMENTED_FILES",
                "DirectoryStructure": "SINGLE_DIRECTORY",
                "ManifestDurationFormat": "INTEGER",
            },
        },
        "Outputs": outputs,
    }


def build_job_request(
    record_id,
    source_bucket: str,
    source_object_path: str,
    destination_prefix: str,
    *,
    ladder: RenditionLadder,
    role_arn: str,
    queue_arn: str | None = None,
    notification_topic: str = "",
) -> JobRequest:
    if not source_bucket or not source_bucket.strip():
        raise MalformedSourceError(source_object_path, "no source bucket configured")
    if not source_object_path or source_object_path.endswith("/"):
        raise MalformedSourceError(source_object_path, "empty source object path")

    input_uri = f"s3://{source_bucket}/{source_object_path.lstrip('/')}"
    destination = output_location(destination_prefix, record_id)

    settings = {
        "Inputs": [{
            "FileInput": input_uri,
            "VideoSelector": {},
            "AudioSelectors": {AUDIO_SELECTOR: {"DefaultSelection": "DEFAULT"}},
            "TimecodeSource": "ZEROBASED",
        }],
        "OutputGroups": [_output_group(m, ladder, destination) for m in ladder.manifests],
    }
    return JobRequest(
        record_id=str(record_id),
        input_uri=input_uri,
        output_uri=destination,
        role_arn=role_arn,
        settings=settings,
        user_metadata={
            "contentRecordId": str(record_id),
            "notificationTopic": notification_topic,
            "ladderVersion": ladder.version,
        },
        queue_arn=queue_arn,
        client_request_token=request_token(record_id, input_uri, ladder.version),
    )
