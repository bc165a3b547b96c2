"""
Abstract interfaces for the external collaborators of the engine.

Adapters live in ``scribe_sync_app.data``.
"""
import typing as t
from abc import ABC, abstractmethod

from scribe_sync_app.core.models import JobHandle, JobStatusReport, TranscriptDocument


class JobRunner(ABC):
    @abstractmethod
    def submit(self, media_url: str, engine_params: dict) -> JobHandle:
        """Submit a media URL for transcription.

        Raises:
            SubmissionError: If the runner rejects the request or returns no handle
        """

    @abstractmethod
    def status(self, job_id: str) -> JobStatusReport:
        """Return the current status report of a job.

        Raises:
            TransientPollError: If the status could not be fetched
        """


class DocumentStore(ABC):
    """Versioned object store holding whole transcript documents."""

    @abstractmethod
    def read_document(self, document_id: str) -> TranscriptDocument:
        """Raises DocumentNotFound if the id is unknown, StoreError on transport failure."""

    @abstractmethod
    def replace_document(self, document_id: str, document: TranscriptDocument) -> None:
        """Overwrite the whole stored document."""

    @abstractmethod
    def create_document(self, document: TranscriptDocument) -> str:
        """Store a new document and return its id."""


class MetadataRecords(ABC):
    """Association between a transcription record and its job, document and media."""

    @abstractmethod
    def set_job_id(self, record_id: t.Any, job_id: str) -> None:
        ...

    @abstractmethod
    def set_document_id(self, record_id: t.Any, document_id: str) -> None:
        ...

    @abstractmethod
    def set_status(self, record_id: t.Any, status: str) -> None:
        ...

    @abstractmethod
    def set_error(self, record_id: t.Any, error_msg: str) -> None:
        ...
