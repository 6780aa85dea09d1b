from encoding.state import QUEUE, SUBMIT, ChangeEvent, decide

URI = "https://host/videos/clip1.mp4?token=abc"


def test_added_and_changed_fields():
    event = ChangeEvent("m1", {"source_video_uri": "a"}, {"source_video_uri": "b", "encoding_state": "init"})
    assert event.added_fields == {"encoding_state"}
    assert event.changed_fields == {"source_video_uri", "encoding_state"}
    assert event.state == "init"


def test_new_source_on_fresh_record_queues():
    assert decide(ChangeEvent("m1", {}, {"source_video_uri": URI})) is QUEUE


def test_init_write_submits():
    event = ChangeEvent("m1", {"source_video_uri": URI}, {"source_video_uri": URI, "encoding_state": "init"})
    assert decide(event) is SUBMIT


def test_source_rewrite_while_init_submits():
    event = ChangeEvent(
        "m1",
        {"source_video_uri": "https://host/videos/", "encoding_state": "init"},
        {"source_video_uri": URI, "encoding_state": "init"},
    )
    assert decide(event) is SUBMIT


def test_reset_from_complete_submits():
    event = ChangeEvent(
        "m1",
        {"source_video_uri": URI, "encoding_state": "complete", "transcoder_job_id": "job-1"},
        {"source_video_uri": URI, "encoding_state": "init"},
    )
    assert decide(event) is SUBMIT


def test_no_transition():
    # unrelated write on a fresh record
    assert decide(ChangeEvent("m1", {}, {})) is None
    # source already there, state unchanged
    snap = {"source_video_uri": URI, "encoding_state": "init"}
    assert decide(ChangeEvent("m1", snap, snap)) is None
    # processing and complete are not driven by change events
    assert decide(ChangeEvent("m1", {"encoding_state": "init"}, {"encoding_state": "processing", "transcoder_job_id": "j"})) is None
    assert decide(ChangeEvent("m1", {"encoding_state": "processing"}, {"encoding_state": "complete"})) is None
    # new source on a finished record does not re-trigger
    assert decide(ChangeEvent("m1", {"encoding_state": "complete"}, {"encoding_state": "complete", "source_video_uri": URI})) is None


def test_redelivered_init_event_with_job_id_is_ignored():
    event = ChangeEvent(
        "m1",
        {"source_video_uri": URI},
        {"source_video_uri": URI, "encoding_state": "init", "transcoder_job_id": "job-123"},
    )
    assert decide(event) is None


def test_payload_is_plain_data():
    payload = ChangeEvent("m1", {}, {"source_video_uri": URI}).as_payload()
    assert payload == {"record_id": "m1", "fields_before": {}, "fields_after": {"source_video_uri": URI}}
