# -*- coding: utf-8 -*-
"""
Normalisation of job runner output into a canonical segment list.

The runner has returned several payload layouts over time; all of them are
reduced here to an ordered list of ``Segment`` objects, and consecutive
segments from the same speaker are merged into one turn.
"""
import logging
import typing as t
import warnings

from scribe_sync_app.config import UNKNOWN_SPEAKER
from scribe_sync_app.core.errors import NormalizationWarning
from scribe_sync_app.core.models import Segment, to_seconds

# Set up logging
logger = logging.getLogger(__name__)


def _flatten_results(items: list) -> list:
    """Expand ``{"result": [[...], [...]]}`` elements into their inner segments."""
    flat = []
    for item in items:
        if isinstance(item, dict) and isinstance(item.get("result"), list):
            for group in item["result"]:
                if isinstance(group, list):
                    flat.extend(group)
                else:
                    flat.append(group)
        else:
            flat.append(item)
    return flat


def _find_raw_segments(payload: t.Any) -> t.Optional[list]:
    """Return the raw segment-like elements of a known payload shape, or None."""
    if isinstance(payload, dict):
        # 1. {"transcription": {"segments": [...]}}
        transcription = payload.get("transcription")
        if isinstance(transcription, dict) and isinstance(transcription.get("segments"), list):
            return transcription["segments"]
        # 2. {"segments": [...]} where elements may be {"result": [[...]]}
        if isinstance(payload.get("segments"), list):
            return _flatten_results(payload["segments"])
        return None

    if isinstance(payload, list):
        # 3. [{"result": [[...]]}, ...]
        if payload and isinstance(payload[0], dict) and "result" in payload[0]:
            return _flatten_results(payload)
        # 4. bare list of segment-like objects
        return payload

    return None


def _to_segment(element: t.Any) -> t.Optional[Segment]:
    """Map one raw element onto a Segment; None when it carries no text."""
    if not isinstance(element, dict):
        return None

    text = element.get("text") or ""
    text = str(text).strip()
    if not text:
        return None

    speakers = element.get("speakers")
    speaker = None
    if isinstance(speakers, list) and speakers:
        speaker = speakers[0]
    speaker = speaker or element.get("speaker") or UNKNOWN_SPEAKER

    return Segment(
        speaker=str(speaker),
        text=text,
        start=to_seconds(element.get("start")),
        end=to_seconds(element.get("end")),
    )


def normalize_output(payload: t.Any) -> list[Segment]:
    """Convert a job runner result payload into an ordered list of segments.

    Recognised shapes, first match wins:
        1. ``{"transcription": {"segments": [...]}}``
        2. ``{"segments": [...]}`` (elements may be ``{"result": [[...]]}``)
        3. ``[{"result": [[...]]}, ...]``
        4. a bare list of segment-like objects

    Elements without text are dropped. An unrecognised payload yields an
    empty list and a ``NormalizationWarning``; this function never raises.

    Args:
        payload: The ``output`` value of a completed job

    Returns:
        List of Segment objects in upstream order (not merged)
    """
    raw = _find_raw_segments(payload)
    if raw is None:
        logger.warning("Unrecognised job output shape: %s", type(payload).__name__)
        warnings.warn(
            f"Unrecognised job output shape ({type(payload).__name__}); using an empty transcript",
            NormalizationWarning,
            stacklevel=2,
        )
        return []

    segments = []
    for element in raw:
        segment = _to_segment(element)
        if segment is not None:
            segments.append(segment)

    logger.debug("Normalised %d raw elements into %d segments", len(raw), len(segments))
    return segments


def merge_consecutive_by_speaker(segments: t.Iterable[Segment]) -> list[Segment]:
    """Merge runs of consecutive segments that share a speaker.

    A single left-to-right pass: texts are joined with one space and the
    merged ``end`` is the later of the two. Order is never changed, so running
    the merge twice gives the same result as running it once.

    Args:
        segments: Segments in playback order

    Returns:
        A new list of merged segments
    """
    merged: list[Segment] = []
    for seg in segments:
        if merged and merged[-1].speaker == seg.speaker:
            prev = merged[-1]
            merged[-1] = prev.model_copy(update={
                "text": f"{prev.text} {seg.text}",
                "end": max(prev.end, seg.end),
            })
        else:
            merged.append(seg)
    return merged


def normalize_and_merge(payload: t.Any) -> list[Segment]:
    """Normalise a runner payload and merge consecutive same-speaker segments."""
    return merge_consecutive_by_speaker(normalize_output(payload))
