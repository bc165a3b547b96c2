"""
Reading and writing of stored transcript documents.

Documents written by older releases used different field names; the reader
here accepts all of them and always hands back a ``TranscriptDocument``.
"""
import logging
import typing as t

from pydantic import ValidationError

from scribe_sync_app.core.errors import DocumentFormatError
from scribe_sync_app.core.models import (
    MediaKind, Segment, TranscriptDocument, VersionEntry, utc_now_iso,
)
from scribe_sync_app.core.normalizer import normalize_and_merge

logger = logging.getLogger(__name__)

_SEGMENT_KEYS = ("segments", "editedTranscript", "edited_transcript", "original_transcript")


def _is_canonical_list(items: list) -> bool:
    """True when every element already looks like a flat stored segment."""
    return all(
        isinstance(item, dict) and "result" not in item and "speakers" not in item
        for item in items
    )


def _schema_version(payload: dict) -> t.Optional[int]:
    """Stored schema version as an int, None when absent or unreadable."""
    value = payload.get("schemaVersion", payload.get("schema_version"))
    if isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _coerce_segments(items: list) -> list[Segment]:
    return [Segment.model_validate(item) for item in items if isinstance(item, dict)]


def extract_segments(payload: t.Any) -> list[Segment]:
    """Pick the transcript out of a stored payload.

    Priority order:
        1. ``schemaVersion == 1`` with a ``segments`` list
        2. ``editedTranscript`` (legacy ``edited_transcript``)
        3. ``original_transcript``
        4. a flat ``segments`` list
        5. raw runner output (``output`` field, or the payload itself),
           normalised and merged
    """
    if isinstance(payload, dict):
        segments = payload.get("segments")
        if _schema_version(payload) == 1 and isinstance(segments, list) and _is_canonical_list(segments):
            return _coerce_segments(segments)

        for key in ("editedTranscript", "edited_transcript", "original_transcript"):
            if isinstance(payload.get(key), list):
                return _coerce_segments(payload[key])

        if isinstance(segments, list) and _is_canonical_list(segments):
            return _coerce_segments(segments)

        if "output" in payload:
            return normalize_and_merge(payload["output"])

    return normalize_and_merge(payload)


def parse_document(payload: t.Any) -> TranscriptDocument:
    """Decode a stored payload of any supported generation into a document.

    Raises:
        DocumentFormatError: If the document metadata cannot be decoded
    """
    try:
        segments = extract_segments(payload)
        if not isinstance(payload, dict):
            return TranscriptDocument(segments=segments)

        meta = {key: value for key, value in payload.items() if key not in _SEGMENT_KEYS}
        document = TranscriptDocument.model_validate(meta)
    except ValidationError as e:
        raise DocumentFormatError(f"Unreadable transcript document: {e}") from e

    return document.model_copy(update={"segments": segments})


def apply_snapshot(
    current: t.Optional[TranscriptDocument],
    snapshot: t.Sequence[Segment],
    media_ref: t.Optional[str] = None,
    media_kind: MediaKind = MediaKind.AUDIO,
    saved_at: t.Optional[str] = None,
) -> TranscriptDocument:
    """Build the next document version from the current remote one.

    The remote history is kept as-is and one entry for ``snapshot`` is
    appended. A ``mediaRef`` already stored remotely wins over the local one,
    and so does a stored ``mediaKind`` when the document carries one.

    Args:
        current: The document as last read from the store, or None
        snapshot: Segments to persist
        media_ref: Local media reference, used when the store has none
        media_kind: Local media kind, used when the stored document has none
        saved_at: Timestamp for the new entry (defaults to now)

    Returns:
        A new TranscriptDocument; ``current`` is not modified
    """
    saved_at = saved_at or utc_now_iso()
    snapshot = list(snapshot)

    history = list(current.version_history) if current is not None else []
    history.append(VersionEntry(saved_at=saved_at, snapshot=snapshot))

    if current is not None:
        media_ref = current.media_ref if current.media_ref is not None else media_ref
        # documents from before mediaKind existed keep the local kind
        if "media_kind" in current.model_fields_set:
            media_kind = current.media_kind

    return TranscriptDocument(
        schema_version=1,
        exported_at=saved_at,
        media_ref=media_ref,
        media_kind=media_kind,
        segments=snapshot,
        version_history=history,
    )
