"""
Exception and warning types for the job lifecycle and edit synchronisation.
"""


class JobError(Exception):
    """Base class for errors raised while driving a transcription job."""
    pass


class SubmissionError(JobError):
    """The job runner rejected the submission or returned no job handle."""
    pass


class TransientPollError(JobError):
    """A status poll failed (network error, non-2xx, unreadable body).

    Polling continues on the next tick.
    """
    pass


class JobFailedError(JobError):
    """The job runner reported the job as FAILED."""

    def __init__(self, job_id: str, reason: str | None = None):
        self.job_id = job_id
        self.reason = reason
        message = f"Job {job_id} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class JobTimeoutError(JobError):
    """Polling gave up after the configured maximum poll duration."""

    def __init__(self, job_id: str, elapsed: float):
        self.job_id = job_id
        self.elapsed = elapsed
        super().__init__(f"Job {job_id} did not finish within {elapsed:.0f}s")


class NormalizationWarning(UserWarning):
    """Runner output did not match any known shape; an empty transcript was produced."""
    pass


class StoreError(Exception):
    """A document store or metadata store request failed."""
    pass


class DocumentNotFound(StoreError):
    """The requested document does not exist in the store."""

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class DocumentFormatError(StoreError):
    """A stored document could not be decoded."""
    pass


class SyncWriteError(Exception):
    """A remote write of the edit buffer failed.

    Never raised to the caller of a buffer mutation; it is delivered through
    the scheduler's ``flushFailed`` signal and the buffer's ERROR save state.
    """
    pass
