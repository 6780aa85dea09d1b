import json
from dataclasses import replace

import pytest
from django.apps import apps

from encoding.errors import LadderConfigError
from encoding.renditions import (
    DEFAULT_LADDER,
    Manifest,
    MuxStream,
    get_ladder,
    load_ladder,
    validate_ladder,
)


def test_default_ladder_is_consistent():
    assert validate_ladder(DEFAULT_LADDER) is DEFAULT_LADDER
    assert [v.height for v in DEFAULT_LADDER.video_streams] == [360, 540, 720, 1080]
    assert DEFAULT_LADDER.manifests[0].segment_seconds == 6


def test_every_manifest_covers_all_mux_streams():
    mux_keys = {m.key for m in DEFAULT_LADDER.mux_streams}
    assert set(DEFAULT_LADDER.manifests[0].mux_streams) == mux_keys


def test_mux_stream_referencing_missing_audio_is_rejected(small_ladder):
    broken = replace(small_ladder, mux_streams=(MuxStream("hls-360p", video="video-360p", audio="audio-999k"),))
    with pytest.raises(LadderConfigError) as exc:
        validate_ladder(broken)
    assert "undefined audio stream 'audio-999k'" in str(exc.value)


def test_manifest_referencing_missing_mux_is_rejected(small_ladder):
    broken = replace(small_ladder, manifests=(Manifest("index", mux_streams=("hls-360p", "hls-4k")),))
    with pytest.raises(LadderConfigError) as exc:
        validate_ladder(broken)
    assert exc.value.problems == ["index: references undefined mux stream 'hls-4k'"]


def test_all_problems_are_reported_together(small_ladder):
    broken = replace(
        small_ladder,
        manifests=(Manifest("index", mux_streams=("hls-360p",), segment_seconds=0, type="DASH"),),
        mux_streams=small_ladder.mux_streams * 2,
    )
    with pytest.raises(LadderConfigError) as exc:
        validate_ladder(broken)
    assert len(exc.value.problems) == 3


def test_ladder_round_trips_through_json_file(tmp_path, small_ladder):
    path = tmp_path / "ladder.json"
    path.write_text(json.dumps(small_ladder.to_dict()))
    assert load_ladder(path) == small_ladder


def test_unreadable_ladder_file(tmp_path):
    path = tmp_path / "ladder.json"
    path.write_text('{"version": "x"}')
    with pytest.raises(LadderConfigError):
        load_ladder(path)
    with pytest.raises(LadderConfigError):
        load_ladder(tmp_path / "missing.json")


def test_get_ladder_reads_configured_file(settings, tmp_path, small_ladder):
    path = tmp_path / "ladder.json"
    path.write_text(json.dumps(small_ladder.to_dict()))
    settings.ENCODING_LADDER_FILE = str(path)
    get_ladder.cache_clear()
    try:
        assert get_ladder() == small_ladder
    finally:
        settings.ENCODING_LADDER_FILE = None
        get_ladder.cache_clear()


def test_non_numeric_ladder_values_are_reported(tmp_path, small_ladder):
    data = small_ladder.to_dict()
    data["manifests"][0]["segment_seconds"] = "6"
    data["video_streams"][0]["bitrate"] = True
    path = tmp_path / "ladder.json"
    path.write_text(json.dumps(data))

    with pytest.raises(LadderConfigError) as exc:
        validate_ladder(load_ladder(path))
    assert exc.value.problems == [
        "video-360p: bitrate must be a number, got True",
        "index: segment_seconds must be a number, got '6'",
    ]


def test_app_startup_fails_on_inconsistent_ladder_file(settings, tmp_path, small_ladder):
    broken = replace(small_ladder, mux_streams=(MuxStream("hls-360p", video="video-4k", audio="audio-64k"),))
    path = tmp_path / "ladder.json"
    path.write_text(json.dumps(broken.to_dict()))
    settings.ENCODING_LADDER_FILE = str(path)
    get_ladder.cache_clear()
    try:
        with pytest.raises(LadderConfigError) as exc:
            apps.get_app_config("encoding").ready()
        assert "undefined video stream 'video-4k'" in str(exc.value)
    finally:
        settings.ENCODING_LADDER_FILE = None
        get_ladder.cache_clear()
