"""
SQLite database helpers for the scribe-sync engine.

The same database holds the transcription metadata records and a local
versioned document store used when no remote store is configured.
"""
import contextlib
import json
import sqlite3
import typing as t
import uuid
from pathlib import Path
import logging

from scribe_sync_app.config import DB_PATH, Status
from scribe_sync_app.core.document import parse_document
from scribe_sync_app.core.errors import DocumentFormatError, DocumentNotFound, StoreError
from scribe_sync_app.core.interfaces import DocumentStore, MetadataRecords
from scribe_sync_app.core.models import MediaKind, TranscriptDocument, TranscriptionRecord

logger = logging.getLogger(__name__)


class DB(DocumentStore, MetadataRecords):
    """Database interface for the scribe-sync engine.

    A new connection is opened for every call, so one DB instance can be
    shared between the GUI thread and worker threads.
    """

    def __init__(self, db_path: t.Union[str, Path] = DB_PATH):
        """Initialize database connection.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self._ensure_tables()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextlib.contextmanager
    def _transaction(self) -> t.Iterator[sqlite3.Connection]:
        """Connection that commits on success, rolls back on error and always closes."""
        conn = self._get_connection()
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise StoreError(f"Database error: {e}") from e
        finally:
            conn.close()

    def _ensure_tables(self):
        """Ensure all required tables exist."""
        schema_path = Path(__file__).parent / "schema.sql"
        schema_sql = schema_path.read_text(encoding="utf-8")
        with self._transaction() as conn:
            conn.executescript(schema_sql)
        logger.debug("Database schema ready at %s", self.db_path)

    # transcription records --------------------------------------------
    def insert_transcription(
        self,
        media_ref: t.Optional[str] = None,
        media_kind: MediaKind = MediaKind.AUDIO,
        alias: t.Optional[str] = None,
    ) -> int:
        """Create a new transcription record.

        Args:
            media_ref: Reference to the media blob
            media_kind: Audio or video
            alias: Display name chosen by the user

        Returns:
            The record ID
        """
        with self._transaction() as conn:
            cur = conn.execute(
                "INSERT INTO transcriptions(alias, media_ref, media_kind, status) VALUES(?, ?, ?, ?)",
                (alias, media_ref, MediaKind(media_kind).value, Status.QUEUED)
            )
            return cur.lastrowid

    def get_transcription(self, record_id: int) -> t.Optional[TranscriptionRecord]:
        """Get a transcription record, or None if it does not exist."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM transcriptions WHERE id = ?",
                (record_id,)
            ).fetchone()
        if row is None:
            return None
        return TranscriptionRecord.model_validate(dict(row))

    def find_by_job_id(self, job_id: str) -> t.Optional[TranscriptionRecord]:
        """Get the record a job was submitted for."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM transcriptions WHERE job_id = ? ORDER BY id DESC LIMIT 1",
                (job_id,)
            ).fetchone()
        return TranscriptionRecord.model_validate(dict(row)) if row else None

    def list_transcriptions(self) -> t.List[TranscriptionRecord]:
        """All records, newest first."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM transcriptions ORDER BY id DESC"
            ).fetchall()
        return [TranscriptionRecord.model_validate(dict(row)) for row in rows]

    def set_job_id(self, record_id: int, job_id: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE transcriptions SET job_id = ? WHERE id = ?",
                (job_id, record_id)
            )

    def set_document_id(self, record_id: int, document_id: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE transcriptions SET document_id = ? WHERE id = ?",
                (document_id, record_id)
            )

    def set_status(self, record_id: int, status: str) -> None:
        """Update the status of a record.

        Args:
            record_id: Record ID
            status: New status (queued, running, done, error)
        """
        with self._transaction() as conn:
            conn.execute(
                "UPDATE transcriptions SET status = ? WHERE id = ?",
                (status, record_id)
            )

    def set_error(self, record_id: int, error_msg: str) -> None:
        """Set error message and update status."""
        with self._transaction() as conn:
            conn.execute(
                "UPDATE transcriptions SET status = ?, error_msg = ? WHERE id = ?",
                (Status.ERROR, error_msg, record_id)
            )

    # local document store ---------------------------------------------
    def create_document(self, document: TranscriptDocument) -> str:
        document_id = uuid.uuid4().hex
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO documents(id, body) VALUES(?, ?)",
                (document_id, json.dumps(document.to_payload(), ensure_ascii=False))
            )
        return document_id

    def read_document(self, document_id: str) -> TranscriptDocument:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT body FROM documents WHERE id = ?",
                (document_id,)
            ).fetchone()
        if row is None:
            raise DocumentNotFound(document_id)
        try:
            payload = json.loads(row["body"])
        except ValueError as e:
            raise DocumentFormatError(f"Document {document_id} is not valid JSON: {e}") from e
        return parse_document(payload)

    def replace_document(self, document_id: str, document: TranscriptDocument) -> None:
        """Overwrite a stored document, creating it if the id is new."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO documents(id, body) VALUES(?, ?)
                ON CONFLICT(id) DO UPDATE SET body = excluded.body,
                                              updated_at = CURRENT_TIMESTAMP
                """,
                (document_id, json.dumps(document.to_payload(), ensure_ascii=False))
            )
