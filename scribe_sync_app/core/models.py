"""
Pydantic models for the scribe-sync engine.

This module contains the data transfer objects used to represent transcripts,
stored documents and job status throughout the application.
"""
import math
import typing as t
from datetime import datetime, timezone
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from scribe_sync_app.config import UNKNOWN_SPEAKER


def to_seconds(value: t.Any) -> float:
    """Coerce a timestamp value to float seconds; unreadable values become 0."""
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(seconds) or math.isinf(seconds):
        return 0.0
    return seconds


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class MediaKind(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"


class SaveState(str, Enum):
    """Persistence status of an edit buffer."""
    SAVED = "saved"
    UNSAVED = "unsaved"
    SAVING = "saving"
    ERROR = "error"


class JobState(str, Enum):
    SUBMITTED = "SUBMITTED"
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)

    @classmethod
    def from_runner(cls, value: t.Any) -> t.Optional["JobState"]:
        """Map a runner status string onto a job state, or None if unknown."""
        if not isinstance(value, str):
            return None
        return _RUNNER_STATUS_ALIASES.get(value.strip().upper())


_RUNNER_STATUS_ALIASES = {
    "QUEUED": JobState.QUEUED,
    "IN_QUEUE": JobState.QUEUED,
    "RUNNING": JobState.RUNNING,
    "IN_PROGRESS": JobState.RUNNING,
    "COMPLETED": JobState.COMPLETED,
    "FAILED": JobState.FAILED,
    "CANCELLED": JobState.FAILED,
    "TIMED_OUT": JobState.FAILED,
}


class Segment(BaseModel):
    """One speaker-attributed span of transcript text.

    Attributes:
        speaker: Speaker label, reassignable by the user
        text: The transcribed text (may be empty while a word is being edited)
        start: Start time in seconds
        end: End time in seconds
    """
    speaker: str = UNKNOWN_SPEAKER
    text: str = ""
    start: float = 0.0
    end: float = 0.0
    model_config = ConfigDict(
        extra='ignore',   # tolerate unknown keys from legacy documents
        frozen=True,      # snapshots are shared with worker threads
    )

    @field_validator("speaker", mode="before")
    @classmethod
    def _default_speaker(cls, value):
        if value is None or value == "":
            return UNKNOWN_SPEAKER
        return str(value)

    @field_validator("text", mode="before")
    @classmethod
    def _default_text(cls, value):
        return "" if value is None else str(value)

    @field_validator("start", "end", mode="before")
    @classmethod
    def _coerce_seconds(cls, value):
        return to_seconds(value)


class VersionEntry(BaseModel):
    """One entry of a document's version history."""
    saved_at: str = Field(
        "",
        validation_alias=AliasChoices("savedAt", "saved_at"),
        serialization_alias="savedAt",
    )
    snapshot: list[Segment] = Field(
        default_factory=list,
        validation_alias=AliasChoices("snapshot", "segments_snapshot"),
    )
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    def to_payload(self) -> dict:
        return {
            "savedAt": self.saved_at,
            "snapshot": [seg.model_dump() for seg in self.snapshot],
        }


class TranscriptDocument(BaseModel):
    """The persisted transcript document.

    ``segments`` is the only canonical copy of the transcript; the legacy
    ``editedTranscript`` field is written as a mirror by ``to_payload``.
    """
    schema_version: int = Field(
        1,
        validation_alias=AliasChoices("schemaVersion", "schema_version"),
        serialization_alias="schemaVersion",
    )
    exported_at: str | None = Field(
        None,
        validation_alias=AliasChoices("exportedAt", "exported_at"),
        serialization_alias="exportedAt",
    )
    media_ref: str | None = Field(
        None,
        validation_alias=AliasChoices("mediaRef", "audioFileId", "media_ref"),
        serialization_alias="mediaRef",
    )
    media_kind: MediaKind = Field(
        MediaKind.AUDIO,
        validation_alias=AliasChoices("mediaKind", "mediaType", "media_kind"),
        serialization_alias="mediaKind",
    )
    segments: list[Segment] = Field(default_factory=list)
    version_history: list[VersionEntry] = Field(
        default_factory=list,
        validation_alias=AliasChoices("versionHistory", "version_history"),
        serialization_alias="versionHistory",
    )
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    @field_validator("media_kind", mode="before")
    @classmethod
    def _lenient_media_kind(cls, value):
        if isinstance(value, MediaKind):
            return value
        if isinstance(value, str) and value.strip().lower() == MediaKind.VIDEO.value:
            return MediaKind.VIDEO
        return MediaKind.AUDIO

    @field_validator("schema_version", mode="before")
    @classmethod
    def _default_schema_version(cls, value):
        return 1 if value is None else value

    def to_payload(self) -> dict:
        """Serialise to the canonical JSON document shape."""
        segments = [seg.model_dump() for seg in self.segments]
        return {
            "schemaVersion": self.schema_version,
            "exportedAt": self.exported_at,
            "mediaRef": self.media_ref,
            "mediaKind": self.media_kind.value,
            "segments": segments,
            "editedTranscript": [dict(seg) for seg in segments],
            "versionHistory": [entry.to_payload() for entry in self.version_history],
        }


class JobHandle(BaseModel):
    """Opaque handle returned by the job runner."""
    job_id: str
    model_config = ConfigDict(frozen=True)


class JobStatusReport(BaseModel):
    """Body of a job runner status response."""
    status: str = ""
    output: t.Any = None
    error: t.Any = None
    model_config = ConfigDict(extra='ignore')

    @property
    def state(self) -> t.Optional[JobState]:
        return JobState.from_runner(self.status)


class TranscriptionRecord(BaseModel):
    """Metadata row linking a transcription to its job and stored document."""
    id: int
    alias: str | None = None
    media_ref: str | None = None
    media_kind: MediaKind = MediaKind.AUDIO
    job_id: str | None = None
    document_id: str | None = None
    status: str
    error_msg: str | None = None
    created_at: str | None = None
    model_config = ConfigDict(extra='ignore')
