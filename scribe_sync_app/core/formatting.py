"""
Utilities for formatting transcript segments.
"""
import logging
import typing as t

from scribe_sync_app.core.models import Segment

# Set up logging
logger = logging.getLogger(__name__)


def format_timestamp(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS``."""
    total = max(0, int(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def segments_to_markdown(segments: t.Sequence[Segment], timestamps: bool = False) -> str:
    """
    Converts a list of segments into a speaker-aware Markdown string.

    Consecutive segments from the same speaker become one paragraph prefixed
    with the speaker in bold (e.g. "**SPEAKER_00:**"). Segments are taken in
    the order given; the document order is the reading order.

    Args:
        segments: The segments to render
        timestamps: Prefix each paragraph with the start time of its first segment

    Returns:
        Paragraphs separated by blank lines, or an empty string for no segments
    """
    if not segments:
        logger.debug("segments_to_markdown called with empty segment list")
        return ""

    paragraphs = []
    current_speaker = None
    current_start = 0.0
    buffer: t.List[str] = []

    def flush_buffer():
        if current_speaker is None:
            return
        text = " ".join(buffer).strip()
        prefix = f"[{format_timestamp(current_start)}] " if timestamps else ""
        paragraphs.append(f"{prefix}**{current_speaker}:** {text}".rstrip())
        buffer.clear()

    for seg in segments:
        if seg.speaker != current_speaker:
            flush_buffer()
            current_speaker = seg.speaker
            current_start = seg.start
        if seg.text.strip():
            buffer.append(seg.text.strip())

    flush_buffer()
    return "\n\n".join(paragraphs)
