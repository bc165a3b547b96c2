"""
Tests for runner output normalisation and speaker merging.
"""
import pytest

from scribe_sync_app.config import UNKNOWN_SPEAKER
from scribe_sync_app.core.errors import NormalizationWarning
from scribe_sync_app.core.models import Segment
from scribe_sync_app.core.normalizer import (
    merge_consecutive_by_speaker, normalize_and_merge, normalize_output,
)


@pytest.mark.parametrize("shape", [
    "transcription_object",
    "segments_with_results",
    "result_list",
    "bare_list",
])
def test_all_shapes_normalise_to_the_same_segments(fixture_data, shape):
    segments = normalize_output(fixture_data["shapes"][shape])
    assert [seg.model_dump() for seg in segments] == fixture_data["expected_segments"]


@pytest.mark.parametrize("shape", ["transcription_object", "result_list"])
def test_normalize_and_merge(fixture_data, shape):
    merged = normalize_and_merge(fixture_data["shapes"][shape])
    assert [seg.model_dump() for seg in merged] == fixture_data["expected_merged"]


def test_happy_path_scenario():
    payload = [{"result": [[
        {"text": "hello", "start": 0, "end": 1, "speakers": ["A"]},
        {"text": "world", "start": 1, "end": 2, "speakers": ["A"]},
    ]]}]
    assert normalize_and_merge(payload) == [Segment(speaker="A", text="hello world", start=0, end=2)]


def test_speaker_resolution():
    segments = normalize_output([
        {"text": "one", "speakers": ["S1", "S2"], "speaker": "X"},
        {"text": "two", "speakers": [], "speaker": "X"},
        {"text": "three"},
        {"text": "four", "speakers": [None], "speaker": None},
    ])
    assert [seg.speaker for seg in segments] == ["S1", "X", UNKNOWN_SPEAKER, UNKNOWN_SPEAKER]


def test_text_is_trimmed_and_empty_text_dropped():
    segments = normalize_output([
        {"text": "  padded  ", "speaker": "A"},
        {"text": "", "speaker": "A"},
        {"text": "   ", "speaker": "A"},
        {"text": None, "speaker": "A"},
        {"speaker": "A"},
        "not a segment",
    ])
    assert [seg.text for seg in segments] == ["padded"]


def test_empty_payloads_give_empty_transcript():
    assert normalize_output([]) == []
    assert normalize_output({"segments": []}) == []


@pytest.mark.parametrize("payload", [None, 42, "text", {"foo": 1}, {"transcription": "x"}])
def test_unknown_shape_warns(payload):
    with pytest.warns(NormalizationWarning):
        assert normalize_output(payload) == []


def test_merge_keeps_later_end():
    merged = merge_consecutive_by_speaker([
        Segment(speaker="A", text="long", start=0, end=5),
        Segment(speaker="A", text="overlap", start=1, end=3),
    ])
    assert merged == [Segment(speaker="A", text="long overlap", start=0, end=5)]


def test_merge_does_not_reorder():
    segments = [
        Segment(speaker="A", text="a", start=5, end=6),
        Segment(speaker="B", text="b", start=0, end=1),
        Segment(speaker="A", text="c", start=2, end=3),
    ]
    assert merge_consecutive_by_speaker(segments) == segments


def test_merge_is_idempotent(fixture_data):
    once = merge_consecutive_by_speaker(normalize_output(fixture_data["shapes"]["bare_list"]))
    assert merge_consecutive_by_speaker(once) == once
    assert merge_consecutive_by_speaker([]) == []
