"""
Error types raised by the encoding pipeline.

Task bodies in tasks.py are the boundary: they catch these, log them and
decide whether the record stays put, retries, or moves to ``failed``.
"""


class EncodingError(Exception):
    """Base exception for encoding pipeline failures."""


class LadderConfigError(EncodingError):
    """The rendition ladder is internally inconsistent."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Invalid rendition ladder: " + "; ".join(problems))


class MalformedSourceError(EncodingError):
    """No storage object can be derived from a record's source video URI."""

    def __init__(self, uri, reason: str = "no object name in URI"):
        self.uri = uri
        self.reason = reason
        super().__init__(f"Malformed source video URI {uri!r}: {reason}")


class TranscoderError(EncodingError):
    """Job submission to the transcoding service failed."""

    def __init__(self, message: str, *, code: str | None = None):
        self.code = code
        super().__init__(message)


class TransientTranscoderError(TranscoderError):
    """Throttling, 5xx or connectivity failure; worth retrying."""


class PermanentTranscoderError(TranscoderError):
    """Rejected request (validation, permissions); retrying will not help."""


class NotificationSignatureError(EncodingError):
    """An SNS delivery is unsigned, or its signature or signing certificate does not check out."""
