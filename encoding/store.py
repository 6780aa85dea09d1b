"""
Narrow reads and writes on ContentRecord used by the pipeline.

Writes go through update_record(), a conditional UPDATE on encoding_state
touching only the given fields. Queryset updates bypass model signals, so
update_record() publishes the change event itself once the surrounding
transaction commits.
"""
import logging

from django.db import transaction
from django.utils import timezone

from .models import ContentRecord
from .state import ChangeEvent

logger = logging.getLogger(__name__)

ANY = object()


def publish_change(event: ChangeEvent) -> None:
    """Dispatch a change event to the state transition handler after commit."""
    from .tasks import handle_record_change

    payload = event.as_payload()
    transaction.on_commit(lambda: handle_record_change.delay(**payload))


def get_record(record_id) -> ContentRecord | None:
    return ContentRecord.objects.filter(pk=record_id).first()


def query_records(**filters) -> list[ContentRecord]:
    return list(ContentRecord.objects.filter(**filters))


def _filter_state(qs, expected_state):
    if expected_state is ANY:
        return qs
    if isinstance(expected_state, (tuple, list, set, frozenset)):
        return qs.filter(encoding_state__in=list(expected_state))
    if expected_state is None:
        return qs.filter(encoding_state__isnull=True)
    return qs.filter(encoding_state=expected_state)


def update_record(record_id, changes: dict, *, expected_state=ANY, require_no_job: bool = False) -> bool:
    """
    Apply ``changes`` to one record if its encoding_state still matches.

    Returns False when the record is gone or the condition did not hold;
    nothing is written in that case.
    """
    record = get_record(record_id)
    if record is None:
        return False

    qs = _filter_state(ContentRecord.objects.filter(pk=record_id), expected_state)
    if require_no_job:
        qs = qs.filter(transcoder_job_id__isnull=True)

    updated = qs.update(**changes, updated_at=timezone.now())
    if not updated:
        logger.debug("Conditional update on %s skipped (expected state %r)", record_id, expected_state)
        return False

    before = record.snapshot()
    for name, value in changes.items():
        setattr(record, name, value)
    after = record.snapshot()
    if before != after:
        publish_change(ChangeEvent(str(record_id), before, after))
    return True
