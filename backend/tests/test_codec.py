"""Tests for the stored blob format."""
import json

import pytest

from cliphunter.models.codec import BLOB_VERSION, CorruptRecordError, dump_blob, load_blob
from cliphunter.models.types import ClipInfo, JobOptions, JobResult


def test_dump_wraps_in_envelope():
    raw = dump_blob(JobOptions(max_clips=3))
    payload = json.loads(raw)
    assert payload["v"] == BLOB_VERSION
    assert payload["data"]["max_clips"] == 3


def test_none_passes_through():
    assert dump_blob(None) is None
    assert load_blob(None, JobOptions) is None


def test_load_result():
    result = JobResult(
        source_title="Video",
        source_duration=120.0,
        clips=[
            ClipInfo(
                id="c1",
                start_time=0.0,
                end_time=30.0,
                duration=30.0,
                score=0.8,
                thumbnail_url="/outputs/j/thumbnails/c1.jpg",
                video_url="/outputs/j/clips/c1.mp4",
            )
        ],
    )
    loaded = load_blob(dump_blob(result), JobResult)
    assert loaded == result
    assert loaded.clips[0].title is None


@pytest.mark.parametrize("raw", [
    "not json",
    json.dumps({"max_clips": 3}),
    json.dumps([1, 2]),
    json.dumps({"v": 99, "data": {}}),
    json.dumps({"v": BLOB_VERSION, "data": {"max_clips": "many"}}),
    json.dumps({"v": BLOB_VERSION, "data": {"max_clips": 50}}),
])
def test_corrupt_blobs_raise(raw):
    with pytest.raises(CorruptRecordError):
        load_blob(raw, JobOptions, "options")


def test_error_names_field():
    with pytest.raises(CorruptRecordError, match="options"):
        load_blob("{", JobOptions, "options")
