"""
Job orchestration for the scribe-sync engine.

JobPoller submits one media file to the job runner, polls it until it reaches
a terminal state and, on success, hands the normalised transcript to a new
TranscriptSession that persists the first snapshot.
"""
import dataclasses
import logging
import time
import typing as t

from PySide6.QtCore import QObject, QThreadPool, QTimer, Signal, Slot

from scribe_sync_app.config import (
    DEFAULT_ENGINE, DEFAULT_LANGUAGE, DEFAULT_MODEL, MAX_POLL_DURATION_S,
    POLL_INTERVAL_MS, SAVE_DEBOUNCE_MS, Status,
)
from scribe_sync_app.core.errors import (
    JobFailedError, JobTimeoutError, SubmissionError, TransientPollError,
)
from scribe_sync_app.core.interfaces import DocumentStore, JobRunner, MetadataRecords
from scribe_sync_app.core.job_fsm import allowed_next_states, can_transition
from scribe_sync_app.core.models import JobHandle, JobState, JobStatusReport, MediaKind
from scribe_sync_app.core.normalizer import normalize_and_merge
from scribe_sync_app.core.session import TranscriptSession
from scribe_sync_app.core.workers import CallWorker
from scribe_sync_app.event_bus import SignalBus

# Set up logging
logger = logging.getLogger(__name__)


@dataclasses.dataclass
class JobSettings:
    """Settings for a transcription job."""
    engine: str = DEFAULT_ENGINE
    model: str = DEFAULT_MODEL
    language: str = DEFAULT_LANGUAGE
    diarize: bool = True
    vad: bool = True
    word_timestamps: bool = True

    def engine_params(self, media_url: str) -> dict:
        """Build the runner ``input`` block for ``media_url``."""
        return {
            "engine": self.engine,
            "model": self.model,
            "transcribe_args": {
                "url": media_url,
                "language": self.language,
                "diarize": self.diarize,
                "vad": self.vad,
                "word_timestamps": self.word_timestamps,
            },
        }


class JobPoller(QObject):
    """Drives one transcription job from submission to a terminal state.

    Polling runs on a repeating QTimer; each status request runs on the thread
    pool and its result is applied on the thread that owns the poller.
    """
    stateChanged = Signal(object)       # JobState
    transientError = Signal(object)     # TransientPollError
    completed = Signal(object)          # list[Segment]
    failed = Signal(object)             # JobFailedError | JobTimeoutError
    sessionReady = Signal(object)       # TranscriptSession

    def __init__(
        self,
        runner: JobRunner,
        store: DocumentStore,
        settings: t.Optional[JobSettings] = None,
        metadata: t.Optional[MetadataRecords] = None,
        record_id: t.Any = None,
        media_ref: t.Optional[str] = None,
        media_kind: MediaKind = MediaKind.AUDIO,
        bus: t.Optional[SignalBus] = None,
        poll_interval_ms: int = POLL_INTERVAL_MS,
        max_poll_duration_s: float = MAX_POLL_DURATION_S,
        save_debounce_ms: int = SAVE_DEBOUNCE_MS,
        thread_pool: t.Optional[QThreadPool] = None,
        parent: t.Optional[QObject] = None,
    ):
        """Initialize the poller.

        Args:
            runner: Job runner client
            store: Document store receiving the transcript
            settings: Engine settings sent with the submission
            metadata: Optional metadata store for job/document ids
            record_id: Metadata record this job belongs to
            media_ref: Reference to the media blob, stored in the document
            media_kind: Audio or video
            bus: Notification hub; receives the balance refresh request
            poll_interval_ms: Time between status requests
            max_poll_duration_s: Give up after this long, 0 polls forever
            save_debounce_ms: Debounce for the edit session created on success
            thread_pool: Pool for the blocking runner and store calls
            parent: Optional Qt parent
        """
        super().__init__(parent)
        self.settings = settings or JobSettings()
        self._runner = runner
        self._store = store
        self._metadata = metadata
        self._record_id = record_id
        self._media_ref = media_ref
        self._media_kind = media_kind
        self._bus = bus
        self._max_poll_duration_s = max_poll_duration_s
        self._save_debounce_ms = save_debounce_ms
        self._pool = thread_pool or QThreadPool.globalInstance()

        self._timer = QTimer(self)
        self._timer.setInterval(poll_interval_ms)
        self._timer.timeout.connect(self.poll_once)

        self._state = JobState.SUBMITTED
        self._handle: t.Optional[JobHandle] = None
        self._session: t.Optional[TranscriptSession] = None
        self._stopped = False
        self._started_at: t.Optional[float] = None
        self._poll_in_flight = False
        self._active_worker: t.Optional[CallWorker] = None
        # guards the one-time completion side effects against repeated COMPLETED reports
        self.initial_snapshot_saved = False

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def handle(self) -> t.Optional[JobHandle]:
        return self._handle

    @property
    def job_id(self) -> str:
        return self._handle.job_id if self._handle else ""

    @property
    def session(self) -> t.Optional[TranscriptSession]:
        return self._session

    @property
    def is_polling(self) -> bool:
        return self._timer.isActive()

    # submission ------------------------------------------------------
    def submit(self, media_url: str) -> JobHandle:
        """Submit ``media_url`` to the job runner (blocking).

        Returns:
            The job handle

        Raises:
            SubmissionError: If the runner rejects the job or returns no handle
        """
        if self._handle is not None:
            raise SubmissionError(f"Job {self._handle.job_id} was already submitted")

        logger.info("Submitting %s for transcription", media_url)
        try:
            handle = self._runner.submit(media_url, self.settings.engine_params(media_url))
        except SubmissionError:
            raise
        except Exception as e:
            raise SubmissionError(f"Failed to submit {media_url}: {e}") from e

        if handle is None or not handle.job_id:
            raise SubmissionError("Job runner returned no job handle")

        self._handle = handle
        self._set_state(JobState.QUEUED)
        self._record("set_job_id", handle.job_id)
        self._record("set_status", Status.QUEUED)
        logger.info("Job %s queued", handle.job_id)
        return handle

    def start(self, handle: t.Optional[JobHandle] = None) -> None:
        """Start polling, optionally resuming a job submitted earlier."""
        if handle is not None and self._handle is None:
            self._handle = handle
            self._set_state(JobState.QUEUED)
        if self._handle is None:
            raise ValueError("start() needs a submitted job")

        self._stopped = False
        self._started_at = time.monotonic()
        self._timer.start()
        logger.debug("Polling job %s every %dms", self.job_id, self._timer.interval())

    def run(self, media_url: str) -> JobHandle:
        """Submit ``media_url`` and start polling it."""
        handle = self.submit(media_url)
        self.start()
        return handle

    def stop(self) -> None:
        """Stop polling. Results of a request still in flight are discarded."""
        if not self._stopped:
            logger.info("Stopped polling job %s in state %s", self.job_id, self._state.value)
        self._stopped = True
        self._timer.stop()

    # polling ---------------------------------------------------------
    @Slot()
    def poll_once(self) -> None:
        """Issue one status request unless one is already running."""
        if self._stopped or self._state.is_terminal or self._handle is None:
            return

        if self._deadline_passed():
            self._time_out()
            return

        if self._poll_in_flight:
            logger.debug("Previous status request for job %s still running, skipping tick", self.job_id)
            return

        self._poll_in_flight = True
        worker = CallWorker(self._runner.status, self._handle.job_id)
        worker.signals.finished.connect(self._on_poll_finished)
        worker.signals.error.connect(self._on_poll_error)
        self._active_worker = worker
        self._pool.start(worker)

    @Slot(object)
    def _on_poll_finished(self, report: JobStatusReport) -> None:
        self._poll_in_flight = False
        self._active_worker = None
        self.handle_status(report)

    @Slot(object)
    def _on_poll_error(self, error: Exception) -> None:
        self._poll_in_flight = False
        self._active_worker = None
        if self._stopped:
            return
        if not isinstance(error, TransientPollError):
            wrapped = TransientPollError(f"Status request failed: {error}")
            wrapped.__cause__ = error
            error = wrapped
        logger.warning("Polling job %s failed, will retry: %s", self.job_id, error)
        self.transientError.emit(error)

    @Slot(object)
    def handle_status(self, report: JobStatusReport) -> None:
        """Apply one status report from the job runner."""
        if self._stopped or self._handle is None:
            logger.debug("Ignoring status %r for inactive poller", report.status)
            return

        state = report.state
        if state is None:
            error = TransientPollError(f"Unknown job status {report.status!r}")
            logger.warning("Job %s: %s", self.job_id, error)
            self.transientError.emit(error)
            return

        if state is JobState.COMPLETED:
            if self._state is not JobState.FAILED:
                self._complete(report)
            return

        if self._state.is_terminal:
            logger.debug("Job %s already %s, ignoring %s", self.job_id, self._state.value, state.value)
            return

        if state is JobState.FAILED:
            self._fail(report)
            return

        if self._set_state(state) and state is JobState.RUNNING:
            self._record("set_status", Status.RUNNING)

    # terminal transitions -------------------------------------------
    def _complete(self, report: JobStatusReport) -> None:
        if self.initial_snapshot_saved:
            logger.info("Job %s completion already handled, skipping", self.job_id)
            return
        self.initial_snapshot_saved = True

        self._timer.stop()
        self._set_state(JobState.COMPLETED)

        segments = normalize_and_merge(report.output)
        if not segments:
            logger.warning("Job %s completed with an empty transcript", self.job_id)
        logger.info("Job %s completed with %d segments", self.job_id, len(segments))
        self.completed.emit(segments)

        self._session = TranscriptSession.seed(
            self._store,
            segments,
            media_ref=self._media_ref,
            media_kind=self._media_kind,
            metadata=self._metadata,
            record_id=self._record_id,
            debounce_ms=self._save_debounce_ms,
            thread_pool=self._pool,
            parent=self,
        )
        self._record("set_status", Status.DONE)
        self.sessionReady.emit(self._session)

        if self._bus is not None:
            self._bus.jobFinished.emit(self.job_id)
            self._bus.balanceRefreshRequested.emit(self.job_id)

    def _fail(self, report: JobStatusReport) -> None:
        self._timer.stop()
        self._set_state(JobState.FAILED)
        reason = str(report.error) if report.error else None
        error = JobFailedError(self.job_id, reason)
        logger.error("%s", error)
        self._record("set_error", str(error))
        self.failed.emit(error)

    def _deadline_passed(self) -> bool:
        if not self._max_poll_duration_s or self._started_at is None:
            return False
        return time.monotonic() - self._started_at >= self._max_poll_duration_s

    def _time_out(self) -> None:
        elapsed = time.monotonic() - (self._started_at or time.monotonic())
        self.stop()
        error = JobTimeoutError(self.job_id, elapsed)
        logger.error("%s", error)
        self._record("set_error", str(error))
        self.failed.emit(error)

    # helpers ---------------------------------------------------------
    def _set_state(self, new_state: JobState) -> bool:
        if new_state is self._state:
            return False
        if not can_transition(self._state, new_state):
            logger.info(
                "Job %s: ignoring %s -> %s (allowed: %s)",
                self.job_id, self._state.value, new_state.value,
                [s.value for s in allowed_next_states(self._state)],
            )
            return False
        logger.info("Job %s: %s -> %s", self.job_id, self._state.value, new_state.value)
        self._state = new_state
        self.stateChanged.emit(new_state)
        return True

    def _record(self, method: str, *args) -> None:
        """Fire-and-forget metadata update; failures are logged only."""
        if self._metadata is None or self._record_id is None:
            return
        try:
            getattr(self._metadata, method)(self._record_id, *args)
        except Exception as e:
            logger.warning("Metadata update %s for record %s failed: %s", method, self._record_id, e)
