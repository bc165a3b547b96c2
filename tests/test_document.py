"""
Tests for reading stored documents and building new document versions.
"""
import pytest

from scribe_sync_app.core.document import apply_snapshot, extract_segments, parse_document
from scribe_sync_app.core.errors import DocumentFormatError
from scribe_sync_app.core.models import MediaKind, Segment, TranscriptDocument


def _seg(speaker, text, start=0.0, end=1.0):
    return {"speaker": speaker, "text": text, "start": start, "end": end}


def test_legacy_document_is_readable(fixture_data):
    doc = parse_document(fixture_data["legacy_document"])

    assert doc.schema_version == 1
    assert doc.exported_at == "2024-03-01T10:00:00.000Z"
    assert doc.media_ref == "file-123"
    assert doc.media_kind is MediaKind.VIDEO
    assert [seg.text for seg in doc.segments] == ["shalom", "ma nishma"]
    assert len(doc.version_history) == 1
    assert doc.version_history[0].saved_at == "2024-03-01T09:59:00.000Z"
    assert doc.version_history[0].snapshot[0].speaker == "SPEAKER_00"


def test_current_document_round_trips():
    doc = TranscriptDocument(
        media_ref="m1",
        segments=[Segment(speaker="A", text="x", start=0, end=1)],
    )
    assert parse_document(doc.to_payload()) == doc


def test_schema_v1_segments_win():
    payload = {
        "schemaVersion": 1,
        "segments": [_seg("A", "canonical")],
        "editedTranscript": [_seg("A", "mirror")],
    }
    assert extract_segments(payload)[0].text == "canonical"


@pytest.mark.parametrize("key", ["editedTranscript", "edited_transcript"])
def test_edited_transcript_beats_unversioned_segments(key):
    payload = {
        "segments": [_seg("A", "stale")],
        key: [_seg("A", "edited")],
        "original_transcript": [_seg("A", "original")],
    }
    assert extract_segments(payload)[0].text == "edited"


def test_original_transcript_used_before_segments():
    payload = {
        "original_transcript": [_seg("A", "original")],
        "segments": [_seg("A", "flat")],
    }
    assert extract_segments(payload)[0].text == "original"


def test_unversioned_flat_segments():
    assert extract_segments({"segments": [_seg("B", "flat")]}) == [Segment(speaker="B", text="flat", start=0, end=1)]


def test_raw_runner_output_is_normalised(fixture_data, expected_merged):
    assert extract_segments({"output": fixture_data["shapes"]["transcription_object"]}) == expected_merged
    assert extract_segments(fixture_data["shapes"]["result_list"]) == expected_merged
    # a segments list holding runner results is not a stored transcript
    assert extract_segments(fixture_data["shapes"]["segments_with_results"]) == expected_merged


def test_bare_list_payload():
    doc = parse_document([_seg("A", "one"), _seg("A", "two", 1, 2)])
    assert doc.segments == [Segment(speaker="A", text="one two", start=0, end=2)]
    assert doc.version_history == []


def test_bad_metadata_raises_format_error():
    with pytest.raises(DocumentFormatError):
        parse_document({"schemaVersion": "not a number", "segments": []})


def test_apply_snapshot_creates_first_version():
    snapshot = [Segment(speaker="A", text="hi", start=0, end=1)]
    doc = apply_snapshot(None, snapshot, "file-1", MediaKind.VIDEO, saved_at="2024-01-01T00:00:00.000Z")

    assert doc.segments == snapshot
    assert doc.media_ref == "file-1"
    assert doc.media_kind is MediaKind.VIDEO
    assert doc.exported_at == "2024-01-01T00:00:00.000Z"
    assert len(doc.version_history) == 1
    assert doc.version_history[0].snapshot == snapshot


def test_apply_snapshot_history_is_append_only():
    first = [Segment(speaker="A", text="v1")]
    second = [Segment(speaker="A", text="v2")]
    third = [Segment(speaker="B", text="v3")]

    doc1 = apply_snapshot(None, first, "m", saved_at="t1")
    doc2 = apply_snapshot(doc1, second, "m", saved_at="t2")
    doc3 = apply_snapshot(doc2, third, "m", saved_at="t3")

    assert [len(d.version_history) for d in (doc1, doc2, doc3)] == [1, 2, 3]
    assert doc3.version_history[:2] == doc2.version_history
    assert [e.saved_at for e in doc3.version_history] == ["t1", "t2", "t3"]
    assert doc3.segments == third
    # inputs are left untouched
    assert len(doc1.version_history) == 1


def test_apply_snapshot_keeps_remote_media():
    remote = TranscriptDocument(media_ref="remote-file", media_kind=MediaKind.VIDEO)
    doc = apply_snapshot(remote, [], "local-file", MediaKind.AUDIO)
    assert doc.media_ref == "remote-file"
    assert doc.media_kind is MediaKind.VIDEO

    remote = TranscriptDocument(media_ref=None)
    assert apply_snapshot(remote, [], "local-file").media_ref == "local-file"


@pytest.mark.parametrize("version", ["1", 1])
def test_schema_version_is_read_leniently(version):
    payload = {
        "schemaVersion": version,
        "segments": [_seg("A", "new")],
        "editedTranscript": [_seg("A", "old")],
    }
    doc = parse_document(payload)
    assert doc.schema_version == 1
    assert doc.segments[0].text == "new"


@pytest.mark.parametrize("version", [None, "two", True])
def test_unreadable_schema_version_falls_back_to_legacy_order(version):
    payload = {
        "schema_version": version,
        "segments": [_seg("A", "flat")],
        "edited_transcript": [_seg("A", "edited")],
    }
    assert extract_segments(payload)[0].text == "edited"


def test_apply_snapshot_keeps_local_kind_for_documents_without_one():
    legacy = parse_document({"audioFileId": "file-1", "segments": [_seg("A", "x")]})
    doc = apply_snapshot(legacy, [], "file-1", MediaKind.VIDEO)
    assert doc.media_kind is MediaKind.VIDEO

    stored_audio = parse_document({"mediaKind": "audio", "segments": []})
    assert apply_snapshot(stored_audio, [], None, MediaKind.VIDEO).media_kind is MediaKind.AUDIO
