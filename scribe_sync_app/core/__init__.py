"""
Core engine: job lifecycle, normalisation, edit buffer and synchronisation.
"""
from scribe_sync_app.core.models import (
    JobHandle, JobState, JobStatusReport, MediaKind, SaveState, Segment,
    TranscriptDocument, VersionEntry,
)
from scribe_sync_app.core.normalizer import (
    merge_consecutive_by_speaker, normalize_and_merge, normalize_output,
)
from scribe_sync_app.core.document import apply_snapshot, parse_document
from scribe_sync_app.core.edit_buffer import EditBuffer
from scribe_sync_app.core.sync import SyncScheduler, WriteResult, write_snapshot
from scribe_sync_app.core.session import TranscriptSession
from scribe_sync_app.core.pipeline import JobPoller, JobSettings

__all__ = [
    "EditBuffer",
    "JobHandle",
    "JobPoller",
    "JobSettings",
    "JobState",
    "JobStatusReport",
    "MediaKind",
    "SaveState",
    "Segment",
    "SyncScheduler",
    "TranscriptDocument",
    "TranscriptSession",
    "VersionEntry",
    "WriteResult",
    "apply_snapshot",
    "merge_consecutive_by_speaker",
    "normalize_and_merge",
    "normalize_output",
    "parse_document",
    "write_snapshot",
]
