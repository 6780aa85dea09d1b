"""
State transition handler: reacts to record change events and moves records
from absent to init, and from init to processing by submitting a job.
"""
import logging

from django.conf import settings
from django.db.models import F

from . import store
from .aws import submit_job
from .errors import MalformedSourceError
from .jobs import JobRequest, build_job_request
from .models import ContentRecord
from .renditions import RenditionLadder, get_ladder
from .state import QUEUE, SUBMIT, ChangeEvent, decide
from .utils import extract_object_name, strip_query_string

logger = logging.getLogger(__name__)

State = ContentRecord.EncodingState


def source_object_path(uri) -> str:
    """Storage key of the uploaded source, e.g. 'uploads/clip1.mp4'."""
    name = extract_object_name(strip_query_string(uri)) if isinstance(uri, str) else None
    if not name:
        raise MalformedSourceError(uri)
    return f"{settings.ENCODING_SOURCE_PREFIX}{name}"


def build_request_for(record: ContentRecord, ladder: RenditionLadder | None = None) -> JobRequest:
    return build_job_request(
        record.pk,
        settings.ENCODING_SOURCE_BUCKET,
        source_object_path(record.source_video_uri),
        settings.ENCODING_DESTINATION_PREFIX,
        ladder=ladder or get_ladder(),
        role_arn=settings.MEDIACONVERT_ROLE_ARN,
        queue_arn=settings.MEDIACONVERT_QUEUE_ARN,
        notification_topic=settings.ENCODING_NOTIFICATION_TOPIC_ARN,
    )


def queue_record(record_id) -> bool:
    """absent -> init. No job is submitted here."""
    queued = store.update_record(record_id, {"encoding_state": State.INIT}, expected_state=None)
    if queued:
        logger.info("Record %s queued for encoding", record_id)
    else:
        logger.debug("Record %s already has an encoding state; queue skipped", record_id)
    return queued


def start_encoding(record_id, *, ladder: RenditionLadder | None = None) -> str | None:
    """
    init -> processing. Submits one job and records its id.

    Returns the job id, or None when the record is not eligible (missing,
    not in init, or already carrying a job id). Raises MalformedSourceError
    and TranscoderError without touching the record.
    """
    record = store.get_record(record_id)
    if record is None:
        logger.warning("Record %s disappeared before encoding could start", record_id)
        return None
    if record.encoding_state != State.INIT or record.transcoder_job_id:
        logger.debug(
            "Record %s not eligible for submission (state=%s, job=%s)",
            record_id, record.encoding_state, record.transcoder_job_id,
        )
        return None

    request = build_request_for(record, ladder)
    job_id = submit_job(request)

    moved = store.update_record(
        record_id,
        {"encoding_state": State.PROCESSING, "transcoder_job_id": job_id, "encoding_error": ""},
        expected_state=State.INIT,
        require_no_job=True,
    )
    if moved:
        logger.info("Record %s submitted as job %s (input %s)", record_id, job_id, request.input_uri)
    else:
        # Same ClientRequestToken, so a concurrent submit got this job id too.
        logger.warning("Record %s changed while job %s was being submitted", record_id, job_id)
    return job_id


def record_submission_failure(record_id, error: Exception, *, final: bool) -> bool:
    """Count a failed attempt; on the final one move init -> failed."""
    changes = {
        "encoding_attempts": F("encoding_attempts") + 1,
        "encoding_error": str(error)[:4000],
    }
    if final:
        changes["encoding_state"] = State.FAILED
    return store.update_record(record_id, changes, expected_state=State.INIT, require_no_job=True)


def on_record_change(event: ChangeEvent):
    """Apply the transition a change event calls for. Returns it, or None."""
    transition = decide(event)
    if transition is None:
        logger.debug(
            "No transition for record %s (state=%s, changed=%s)",
            event.record_id, event.state, sorted(event.changed_fields),
        )
        return None

    if transition is QUEUE:
        queue_record(event.record_id)
    elif transition is SUBMIT:
        start_encoding(event.record_id)
    return transition
