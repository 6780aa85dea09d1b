import pytest

from encoding import handlers
from encoding.errors import MalformedSourceError, TransientTranscoderError
from encoding.state import QUEUE, SUBMIT, ChangeEvent

pytestmark = pytest.mark.django_db

URI = "https://host/videos/clip1.mp4?token=abc"


def _init_event(record):
    return ChangeEvent(
        str(record.pk),
        {"source_video_uri": record.source_video_uri},
        {"source_video_uri": record.source_video_uri, "encoding_state": "init"},
    )


def test_attaching_source_moves_record_to_init(make_record, published, submit):
    record = make_record()
    assert published == []

    record.source_video_uri = URI
    record.save()
    assert published == [ChangeEvent(str(record.pk), {}, {"source_video_uri": URI})]

    assert handlers.on_record_change(published.pop()) is QUEUE
    record.refresh_from_db()
    assert record.encoding_state == "init"
    assert record.transcoder_job_id is None
    submit.assert_not_called()
    # the init write is itself observed as a change
    assert published == [_init_event(record)]


def test_init_event_submits_job_and_moves_to_processing(make_record, published, submit):
    record = make_record(source_video_uri=URI, encoding_state="init")
    published.clear()

    assert handlers.on_record_change(_init_event(record)) is SUBMIT

    submit.assert_called_once()
    request = submit.call_args.args[0]
    assert request.input_uri == "s3://media-test/uploads/clip1.mp4"
    assert request.output_uri == f"s3://media-test/encoded/{record.pk}/"
    record.refresh_from_db()
    assert record.encoding_state == "processing"
    assert record.transcoder_job_id == "job-123"


def test_redelivered_init_event_submits_once(make_record, published, submit):
    record = make_record(source_video_uri=URI, encoding_state="init")
    event = _init_event(record)

    handlers.on_record_change(event)
    handlers.on_record_change(event)

    assert submit.call_count == 1


def test_duplicate_source_events_write_init_once(make_record, published, submit):
    record = make_record(source_video_uri=URI)
    published.clear()
    event = ChangeEvent(str(record.pk), {}, {"source_video_uri": URI})

    assert handlers.queue_record(event.record_id) is True
    assert handlers.queue_record(event.record_id) is False
    handlers.on_record_change(event)

    assert len(published) == 1
    record.refresh_from_db()
    assert record.encoding_state == "init"


def test_malformed_source_leaves_record_untouched(make_record, published, submit):
    record = make_record(source_video_uri="https://host/videos/", encoding_state="init")

    with pytest.raises(MalformedSourceError):
        handlers.on_record_change(_init_event(record))

    submit.assert_not_called()
    record.refresh_from_db()
    assert record.encoding_state == "init"
    assert record.transcoder_job_id is None


def test_submission_error_leaves_record_in_init(make_record, published, submit):
    submit.side_effect = TransientTranscoderError("TooManyRequestsException: slow down")
    record = make_record(source_video_uri=URI, encoding_state="init")

    with pytest.raises(TransientTranscoderError):
        handlers.start_encoding(record.pk)

    record.refresh_from_db()
    assert record.encoding_state == "init"
    assert record.transcoder_job_id is None


def test_start_encoding_skips_ineligible_records(make_record, published, submit):
    done = make_record(source_video_uri=URI, encoding_state="complete", transcoder_job_id="job-1")
    assert handlers.start_encoding(done.pk) is None
    assert handlers.start_encoding("6c1f4f0e-3f0c-4d8e-9a55-0d7f0a8b9c11") is None
    submit.assert_not_called()


def test_record_changed_during_submission_keeps_newer_state(make_record, published, submit):
    record = make_record(source_video_uri=URI, encoding_state="init")

    def racing_submit(request):
        type(record).objects.filter(pk=record.pk).update(encoding_state="failed")
        return "job-9"

    submit.side_effect = racing_submit
    assert handlers.start_encoding(record.pk) == "job-9"
    record.refresh_from_db()
    assert record.encoding_state == "failed"
    assert record.transcoder_job_id is None


def test_submission_failures_are_counted(make_record, published):
    record = make_record(source_video_uri=URI, encoding_state="init")

    handlers.record_submission_failure(record.pk, RuntimeError("boom"), final=False)
    record.refresh_from_db()
    assert (record.encoding_state, record.encoding_attempts, record.encoding_error) == ("init", 1, "boom")

    handlers.record_submission_failure(record.pk, RuntimeError("boom again"), final=True)
    record.refresh_from_db()
    assert (record.encoding_state, record.encoding_attempts) == ("failed", 2)


def test_source_object_path(settings):
    assert handlers.source_object_path(URI) == "uploads/clip1.mp4"
    settings.ENCODING_SOURCE_PREFIX = ""
    assert handlers.source_object_path("gs://bucket/a/b/car.mov") == "car.mov"
    with pytest.raises(MalformedSourceError):
        handlers.source_object_path("https://host/")
    with pytest.raises(MalformedSourceError):
        handlers.source_object_path(None)
