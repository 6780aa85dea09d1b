import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from . import handlers, reconciler, store
from .errors import MalformedSourceError, PermanentTranscoderError, TransientTranscoderError
from .models import ContentRecord
from .state import ChangeEvent

logger = logging.getLogger(__name__)


@shared_task(bind=True)
def handle_record_change(self, record_id: str, fields_before=None, fields_after=None):
    """
    Entry point for record change events. Errors stop here: a malformed source
    is recorded on the record but its state is kept so a corrected source can
    retry, transient submission errors retry with backoff, and anything that
    cannot succeed moves the record to failed.
    """
    event = ChangeEvent(record_id, fields_before or {}, fields_after or {})
    try:
        transition = handlers.on_record_change(event)
    except MalformedSourceError as e:
        handlers.record_submission_failure(record_id, e, final=False)
        logger.error("Record %s not submitted, state left unchanged: %s", record_id, e)
        return None
    except TransientTranscoderError as e:
        retries = self.request.retries
        max_retries = settings.ENCODING_SUBMIT_MAX_RETRIES
        if retries < max_retries:
            handlers.record_submission_failure(record_id, e, final=False)
            countdown = settings.ENCODING_SUBMIT_RETRY_BACKOFF * (2 ** retries)
            logger.warning(
                "Submitting record %s failed (%s); retry %d/%d in %ss",
                record_id, e, retries + 1, max_retries, countdown,
            )
            raise self.retry(exc=e, countdown=countdown, max_retries=max_retries)
        handlers.record_submission_failure(record_id, e, final=True)
        logger.error("Submitting record %s failed after %d retries: %s", record_id, retries, e)
        return None
    except PermanentTranscoderError as e:
        handlers.record_submission_failure(record_id, e, final=True)
        logger.error("Transcoder rejected record %s: %s", record_id, e)
        return None
    except Exception:
        logger.exception("Unhandled error while handling change on record %s", record_id)
        return None
    return transition.name if transition else None


@shared_task
def reconcile_job_completion(job_id: str, status: str, error_message: str = ""):
    try:
        return reconciler.reconcile(reconciler.JobNotification(job_id, status.upper(), error_message))
    except Exception:
        logger.exception("Unhandled error while reconciling job %s", job_id)
        return 0


@shared_task
def requeue_stalled_records():
    """
    Re-emit the last event for records that never got a job: sourced records
    the pipeline never picked up, and init records with no job. Records whose
    submission already failed more often than the retry budget are left for
    an operator.
    """
    cutoff = timezone.now() - timedelta(seconds=settings.ENCODING_STALL_SECONDS)
    unqueued = store.query_records(
        encoding_state__isnull=True,
        source_video_uri__gt="",
        updated_at__lt=cutoff,
    )
    stalled = store.query_records(
        encoding_state=ContentRecord.EncodingState.INIT,
        transcoder_job_id__isnull=True,
        encoding_attempts__lte=settings.ENCODING_SUBMIT_MAX_RETRIES,
        updated_at__lt=cutoff,
    )

    requeued = 0
    for record in unqueued:
        logger.warning("Record %s has a source but was never queued; requeueing", record.pk)
        store.publish_change(ChangeEvent(str(record.pk), {}, record.snapshot()))
        requeued += 1
    for record in stalled:
        after = record.snapshot()
        before = {k: v for k, v in after.items() if k != "encoding_state"}
        logger.warning("Record %s stalled in init since %s; requeueing", record.pk, record.updated_at)
        store.publish_change(ChangeEvent(str(record.pk), before, after))
        requeued += 1
    return requeued
