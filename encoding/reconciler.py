"""
Completion reconciler: applies MediaConvert job state changes to the records
that reference the job.

Notifications arrive at least once and in any order. The conditional update
from processing makes a repeated notification a no-op, so no deduplication
is kept.
"""
import logging
from dataclasses import dataclass

from . import store
from .models import ContentRecord

logger = logging.getLogger(__name__)

State = ContentRecord.EncodingState

# MediaConvert job status -> record state
FINAL_STATUSES = {
    "COMPLETE": State.COMPLETE,
    "ERROR": State.FAILED,
    "CANCELED": State.FAILED,
}


@dataclass(frozen=True)
class JobNotification:
    job_id: str
    status: str
    error_message: str = ""

    @classmethod
    def from_event(cls, payload: dict) -> "JobNotification":
        """
        Accepts an EventBridge "MediaConvert Job State Change" event or a bare
        {"jobId": ..., "status": ...} body. Raises ValueError without a job id.
        """
        if not isinstance(payload, dict):
            raise ValueError("notification must be a JSON object")
        detail = payload.get("detail") if isinstance(payload.get("detail"), dict) else payload
        job_id = detail.get("jobId") or detail.get("job_id")
        if not job_id or not isinstance(job_id, str):
            raise ValueError("notification carries no jobId")
        return cls(
            job_id=job_id,
            status=str(detail.get("status") or "").upper(),
            error_message=str(detail.get("errorMessage") or ""),
        )


def reconcile(notification: JobNotification) -> int:
    """Move matching records out of processing. Returns how many changed."""
    target = FINAL_STATUSES.get(notification.status)
    if target is None:
        logger.debug("Ignoring job %s status %s", notification.job_id, notification.status)
        return 0

    records = store.query_records(transcoder_job_id=notification.job_id)
    if not records:
        logger.warning(
            "No record references job %s (status %s); deleted or duplicate notification",
            notification.job_id, notification.status,
        )
        return 0

    changes = {"encoding_state": target}
    if target == State.FAILED:
        changes["encoding_error"] = (notification.error_message or notification.status)[:4000]

    updated = 0
    for record in records:
        if store.update_record(record.pk, changes, expected_state=State.PROCESSING):
            updated += 1
            logger.info("Record %s is %s (job %s)", record.pk, target, notification.job_id)
        else:
            logger.debug("Record %s already %s; job %s notification ignored", record.pk, record.encoding_state, notification.job_id)
    return updated
