"""
TranscriptSession: one open transcript with its buffer and scheduler.
"""
import logging
import typing as t

from PySide6.QtCore import QObject, QThreadPool, Slot

from scribe_sync_app.config import SAVE_DEBOUNCE_MS
from scribe_sync_app.core.edit_buffer import EditBuffer
from scribe_sync_app.core.interfaces import DocumentStore, MetadataRecords
from scribe_sync_app.core.models import MediaKind, SaveState, Segment
from scribe_sync_app.core.sync import SyncScheduler

logger = logging.getLogger(__name__)


class TranscriptSession(QObject):
    """Wires an EditBuffer to a SyncScheduler and to the metadata record.

    Use ``seed`` for a transcript fresh out of a finished job and ``open`` to
    resume editing a stored document.
    """

    def __init__(
        self,
        store: DocumentStore,
        buffer: EditBuffer,
        document_id: t.Optional[str] = None,
        media_ref: t.Optional[str] = None,
        media_kind: MediaKind = MediaKind.AUDIO,
        metadata: t.Optional[MetadataRecords] = None,
        record_id: t.Any = None,
        debounce_ms: int = SAVE_DEBOUNCE_MS,
        thread_pool: t.Optional[QThreadPool] = None,
        parent: t.Optional[QObject] = None,
    ):
        super().__init__(parent)
        self.metadata = metadata
        self.record_id = record_id
        self.buffer = buffer
        self.buffer.setParent(self)
        self.scheduler = SyncScheduler(
            buffer,
            store,
            document_id=document_id,
            media_ref=media_ref,
            media_kind=media_kind,
            debounce_ms=debounce_ms,
            thread_pool=thread_pool,
            parent=self,
        )
        self.scheduler.documentCreated.connect(self._on_document_created)

    @classmethod
    def seed(cls, store: DocumentStore, segments: t.Iterable[Segment], **kwargs) -> "TranscriptSession":
        """Start a session for a new transcript and persist its first snapshot."""
        session = cls(store, EditBuffer(), **kwargs)
        session.buffer.replace_segments(segments)
        session.scheduler.flush_now()
        return session

    @classmethod
    def open(cls, store: DocumentStore, document_id: str, **kwargs) -> "TranscriptSession":
        """Load a stored document (blocking) and start a session on it.

        Raises:
            DocumentNotFound: If the document does not exist
            StoreError: If the store cannot be reached
        """
        document = store.read_document(document_id)
        logger.info("Opened document %s (%d segments)", document_id, len(document.segments))
        return cls(
            store,
            EditBuffer(document.segments),
            document_id=document_id,
            media_ref=document.media_ref,
            media_kind=document.media_kind,
            **kwargs,
        )

    @property
    def document_id(self) -> t.Optional[str]:
        return self.scheduler.document_id

    @property
    def save_state(self) -> SaveState:
        return self.buffer.save_state

    def retry(self) -> None:
        """Retry persisting after a failed save."""
        self.scheduler.retry()

    def close(self) -> None:
        self.scheduler.stop()

    @Slot(str)
    def _on_document_created(self, document_id: str) -> None:
        if self.metadata is None or self.record_id is None:
            return
        try:
            self.metadata.set_document_id(self.record_id, document_id)
        except Exception as e:
            logger.warning("Could not record document id %s for record %s: %s", document_id, self.record_id, e)
