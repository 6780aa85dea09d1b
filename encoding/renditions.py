"""
Rendition ladder used for every transcode.

The ladder is plain data: elementary video and audio streams, the mux streams
that pair them, and the manifests that list the mux streams. Calling code
gets it from get_ladder() and never hardcodes encoding parameters.

Set ENCODING_LADDER_FILE to a JSON document with the same shape as
RenditionLadder.to_dict() to swap the ladder without a code change.
"""
import json
import logging
from dataclasses import asdict, dataclass, field
from functools import lru_cache
from pathlib import Path

from django.conf import settings

from .errors import LadderConfigError

logger = logging.getLogger(__name__)

SUPPORTED_MANIFEST_TYPES = {"HLS"}
SUPPORTED_VIDEO_CODECS = {"H_264"}
SUPPORTED_AUDIO_CODECS = {"AAC"}
SUPPORTED_RATE_CONTROL = {"QVBR", "CBR", "VBR"}


@dataclass(frozen=True)
class VideoStream:
    key: str
    width: int
    height: int
    bitrate: int                  # bits/s; the ceiling when rate_control is QVBR
    frame_rate: int
    profile: str = "HIGH"
    rate_control: str = "QVBR"
    quality_level: int = 7        # QVBR quality, 1..10
    gop_seconds: float = 2.0
    codec: str = "H_264"


@dataclass(frozen=True)
class AudioStream:
    key: str
    bitrate: int
    sample_rate: int = 48000
    channels: int = 2
    codec: str = "AAC"


@dataclass(frozen=True)
class MuxStream:
    key: str
    video: str
    audio: str
    container: str = "M3U8"


@dataclass(frozen=True)
class Manifest:
    key: str
    mux_streams: tuple[str, ...]
    segment_seconds: int = 6
    type: str = "HLS"


@dataclass(frozen=True)
class RenditionLadder:
    version: str
    video_streams: tuple[VideoStream, ...]
    audio_streams: tuple[AudioStream, ...]
    mux_streams: tuple[MuxStream, ...]
    manifests: tuple[Manifest, ...] = field(default_factory=tuple)

    def video(self, key: str) -> VideoStream:
        return next(v for v in self.video_streams if v.key == key)

    def audio(self, key: str) -> AudioStream:
        return next(a for a in self.audio_streams if a.key == key)

    def mux(self, key: str) -> MuxStream:
        return next(m for m in self.mux_streams if m.key == key)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "RenditionLadder":
        try:
            return cls(
                version=str(data["version"]),
                video_streams=tuple(VideoStream(**v) for v in data["video_streams"]),
                audio_streams=tuple(AudioStream(**a) for a in data["audio_streams"]),
                mux_streams=tuple(MuxStream(**m) for m in data["mux_streams"]),
                manifests=tuple(
                    Manifest(**{**m, "mux_streams": tuple(m["mux_streams"])})
                    for m in data.get("manifests", [])
                ),
            )
        except (KeyError, TypeError) as e:
            raise LadderConfigError([f"unreadable ladder definition: {e}"]) from e


DEFAULT_LADDER = RenditionLadder(
    version="2024-06-h264-hls",
    video_streams=(
        VideoStream("video-360p", 640, 360, bitrate=800_000, frame_rate=30, profile="MAIN", quality_level=7),
        VideoStream("video-540p", 960, 540, bitrate=1_500_000, frame_rate=30, quality_level=7),
        VideoStream("video-720p", 1280, 720, bitrate=3_000_000, frame_rate=30, quality_level=8),
        VideoStream("video-1080p", 1920, 1080, bitrate=6_000_000, frame_rate=30, quality_level=9),
    ),
    audio_streams=(
        AudioStream("audio-64k", bitrate=64_000),
        AudioStream("audio-128k", bitrate=128_000),
    ),
    mux_streams=(
        MuxStream("hls-360p", video="video-360p", audio="audio-64k"),
        MuxStream("hls-540p", video="video-540p", audio="audio-128k"),
        MuxStream("hls-720p", video="video-720p", audio="audio-128k"),
        MuxStream("hls-1080p", video="video-1080p", audio="audio-128k"),
    ),
    manifests=(
        Manifest("index", mux_streams=("hls-360p", "hls-540p", "hls-720p", "hls-1080p"), segment_seconds=6),
    ),
)


def _duplicates(keys) -> list[str]:
    seen, dupes = set(), []
    for k in keys:
        if k in seen and k not in dupes:
            dupes.append(k)
        seen.add(k)
    return dupes


def _non_numeric(stream, *names) -> list[str]:
    # bool is an int subclass but never a valid encoding parameter
    return [
        f"{stream.key}: {name} must be a number, got {getattr(stream, name)!r}"
        for name in names
        if isinstance(getattr(stream, name), bool) or not isinstance(getattr(stream, name), (int, float))
    ]


def validate_ladder(ladder: RenditionLadder) -> RenditionLadder:
    """Return the ladder unchanged, or raise LadderConfigError listing every problem found."""
    problems = []

    for kind, streams in (
        ("video", ladder.video_streams),
        ("audio", ladder.audio_streams),
        ("mux", ladder.mux_streams),
        ("manifest", ladder.manifests),
    ):
        for key in _duplicates(s.key for s in streams):
            problems.append(f"duplicate {kind} stream key {key!r}")

    if not ladder.video_streams:
        problems.append("no video streams defined")
    if not ladder.manifests:
        problems.append("no manifests defined")

    for v in ladder.video_streams:
        bad = _non_numeric(v, "width", "height", "bitrate", "frame_rate", "quality_level", "gop_seconds")
        if bad:
            problems.extend(bad)
            continue
        if v.width <= 0 or v.height <= 0:
            problems.append(f"{v.key}: width and height must be positive")
        if v.bitrate <= 0 or v.frame_rate <= 0 or v.gop_seconds <= 0:
            problems.append(f"{v.key}: bitrate, frame rate and GOP must be positive")
        if v.codec not in SUPPORTED_VIDEO_CODECS:
            problems.append(f"{v.key}: unsupported codec {v.codec!r}")
        if v.rate_control not in SUPPORTED_RATE_CONTROL:
            problems.append(f"{v.key}: unsupported rate control {v.rate_control!r}")
        if not 1 <= v.quality_level <= 10:
            problems.append(f"{v.key}: quality level must be 1..10")

    for a in ladder.audio_streams:
        bad = _non_numeric(a, "bitrate", "sample_rate", "channels")
        if bad:
            problems.extend(bad)
            continue
        if a.bitrate <= 0 or a.sample_rate <= 0:
            problems.append(f"{a.key}: bitrate and sample rate must be positive")
        if a.codec not in SUPPORTED_AUDIO_CODECS:
            problems.append(f"{a.key}: unsupported codec {a.codec!r}")

    video_keys = {v.key for v in ladder.video_streams}
    audio_keys = {a.key for a in ladder.audio_streams}
    for m in ladder.mux_streams:
        if m.video not in video_keys:
            problems.append(f"{m.key}: references undefined video stream {m.video!r}")
        if m.audio not in audio_keys:
            problems.append(f"{m.key}: references undefined audio stream {m.audio!r}")

    mux_keys = {m.key for m in ladder.mux_streams}
    for man in ladder.manifests:
        if man.type not in SUPPORTED_MANIFEST_TYPES:
            problems.append(f"{man.key}: unsupported manifest type {man.type!r}")
        bad = _non_numeric(man, "segment_seconds")
        if bad:
            problems.extend(bad)
        elif man.segment_seconds <= 0:
            problems.append(f"{man.key}: segment duration must be positive")
        if not man.mux_streams:
            problems.append(f"{man.key}: lists no mux streams")
        for ref in man.mux_streams:
            if ref not in mux_keys:
                problems.append(f"{man.key}: references undefined mux stream {ref!r}")

    if problems:
        raise LadderConfigError(problems)
    return ladder


def load_ladder(path: str | Path) -> RenditionLadder:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise LadderConfigError([f"cannot read {path}: {e}"]) from e
    return RenditionLadder.from_dict(data)


@lru_cache(maxsize=1)
def get_ladder() -> RenditionLadder:
    """The active, validated ladder. Loaded once per process."""
    path = settings.ENCODING_LADDER_FILE
    ladder = load_ladder(path) if path else DEFAULT_LADDER
    validate_ladder(ladder)
    logger.info(
        "Rendition ladder %s loaded (%d video, %d audio, %d mux streams)",
        ladder.version, len(ladder.video_streams), len(ladder.audio_streams), len(ladder.mux_streams),
    )
    return ladder
