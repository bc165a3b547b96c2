"""
SyncScheduler: debounced, history-preserving persistence of an EditBuffer.

Bursts of edits collapse into one write once the buffer has been quiet for the
debounce interval. At most one write per document is in flight; a debounce
that fires during a write schedules a single follow-up write, which carries
whatever the buffer holds when the running write completes.
"""
import dataclasses
import logging
import typing as t

from PySide6.QtCore import QObject, QThreadPool, QTimer, Signal, Slot

from scribe_sync_app.config import SAVE_DEBOUNCE_MS
from scribe_sync_app.core.document import apply_snapshot
from scribe_sync_app.core.edit_buffer import EditBuffer
from scribe_sync_app.core.errors import DocumentNotFound, StoreError, SyncWriteError
from scribe_sync_app.core.interfaces import DocumentStore
from scribe_sync_app.core.models import MediaKind, Segment, TranscriptDocument
from scribe_sync_app.core.workers import CallWorker

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class WriteResult:
    """Outcome of one successful remote write."""
    document_id: str
    document: TranscriptDocument
    created: bool = False


def write_snapshot(
    store: DocumentStore,
    document_id: t.Optional[str],
    snapshot: t.Sequence[Segment],
    media_ref: t.Optional[str] = None,
    media_kind: MediaKind = MediaKind.AUDIO,
) -> WriteResult:
    """Persist one snapshot with read-merge-write.

    Without a ``document_id`` a new document is created. Otherwise the current
    remote document is read, a history entry is appended and the whole
    document is written back.

    Raises:
        SyncWriteError: If any store call fails
    """
    try:
        if document_id is None:
            document = apply_snapshot(None, snapshot, media_ref, media_kind)
            new_id = store.create_document(document)
            if not new_id:
                raise SyncWriteError("Document store returned no document id")
            logger.info("Created document %s (%d segments)", new_id, len(document.segments))
            return WriteResult(document_id=new_id, document=document, created=True)

        try:
            current = store.read_document(document_id)
        except DocumentNotFound:
            logger.warning("Document %s missing remotely, writing a fresh copy", document_id)
            current = None

        document = apply_snapshot(current, snapshot, media_ref, media_kind)
        store.replace_document(document_id, document)
        logger.info(
            "Saved document %s (%d segments, %d versions)",
            document_id, len(document.segments), len(document.version_history),
        )
        return WriteResult(document_id=document_id, document=document)
    except StoreError as e:
        raise SyncWriteError(f"Failed to save document {document_id or '(new)'}: {e}") from e


class SyncScheduler(QObject):
    """Turns EditBuffer dirty notifications into a bounded stream of writes."""
    documentCreated = Signal(str)       # document_id
    flushStarted = Signal(int)          # revision being written
    flushSucceeded = Signal(object)     # WriteResult
    flushFailed = Signal(object)        # SyncWriteError

    def __init__(
        self,
        buffer: EditBuffer,
        store: DocumentStore,
        document_id: t.Optional[str] = None,
        media_ref: t.Optional[str] = None,
        media_kind: MediaKind = MediaKind.AUDIO,
        debounce_ms: int = SAVE_DEBOUNCE_MS,
        thread_pool: t.Optional[QThreadPool] = None,
        parent: t.Optional[QObject] = None,
    ):
        """Initialize the scheduler.

        Args:
            buffer: The buffer to persist
            store: Document store to write to
            document_id: Id of the stored document, None until the first write
            media_ref: Media reference written into new documents
            media_kind: Media kind written into new documents
            debounce_ms: Quiet period before a write starts
            thread_pool: Pool for the blocking store calls
            parent: Optional Qt parent
        """
        super().__init__(parent)
        self._buffer = buffer
        self._store = store
        self._document_id = document_id
        self._media_ref = media_ref
        self._media_kind = media_kind
        self._pool = thread_pool or QThreadPool.globalInstance()

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(debounce_ms)
        self._timer.timeout.connect(self._on_debounce_timeout)

        self._in_flight = False
        self._follow_up = False
        self._flush_revision = 0
        self._active_worker: t.Optional[CallWorker] = None
        self.write_count = 0

        buffer.dirty.connect(self.notify_dirty)

    @property
    def document_id(self) -> t.Optional[str]:
        return self._document_id

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def has_follow_up(self) -> bool:
        return self._follow_up

    @property
    def debounce_pending(self) -> bool:
        return self._timer.isActive()

    @Slot()
    def notify_dirty(self) -> None:
        """Restart the debounce timer."""
        self._timer.start()

    def flush_now(self) -> None:
        """Write immediately, skipping the debounce.

        Used for the initial snapshot and to retry after a failed write. If a
        write is already running, the follow-up write is scheduled instead.
        """
        self._timer.stop()
        if self._in_flight:
            self._follow_up = True
            return
        self._start_flush()

    retry = flush_now

    def stop(self) -> None:
        """Cancel any pending debounced write."""
        self._timer.stop()
        self._follow_up = False

    @Slot()
    def _on_debounce_timeout(self) -> None:
        if self._in_flight:
            logger.debug("Write in flight, deferring flush for revision %d", self._buffer.revision)
            self._follow_up = True
            return
        self._start_flush()

    def _start_flush(self) -> None:
        revision, snapshot = self._buffer.snapshot()
        # the snapshot covers every mutation seen so far
        self._timer.stop()
        self._in_flight = True
        self._follow_up = False
        self._flush_revision = revision
        self._buffer.mark_saving()

        worker = CallWorker(
            write_snapshot,
            self._store,
            self._document_id,
            snapshot,
            self._media_ref,
            self._media_kind,
        )
        worker.signals.finished.connect(self._on_flush_finished)
        worker.signals.error.connect(self._on_flush_failed)
        self._active_worker = worker

        logger.debug("Flushing revision %d (%d segments)", revision, len(snapshot))
        self.flushStarted.emit(revision)
        self._pool.start(worker)

    @Slot(object)
    def _on_flush_finished(self, result: WriteResult) -> None:
        self._in_flight = False
        self._active_worker = None
        self.write_count += 1

        if self._document_id is None:
            self._document_id = result.document_id
            self.documentCreated.emit(result.document_id)
        self._media_ref = result.document.media_ref
        self._media_kind = result.document.media_kind

        self._buffer.mark_saved(self._flush_revision)
        self.flushSucceeded.emit(result)

        if self._follow_up:
            self._start_flush()

    @Slot(object)
    def _on_flush_failed(self, error: Exception) -> None:
        self._in_flight = False
        self._active_worker = None
        self._follow_up = False

        if not isinstance(error, SyncWriteError):
            wrapped = SyncWriteError(f"Unexpected error while saving: {error}")
            wrapped.__cause__ = error
            error = wrapped

        logger.error("Save of revision %d failed: %s", self._flush_revision, error)
        self._buffer.mark_error(error)
        self.flushFailed.emit(error)
