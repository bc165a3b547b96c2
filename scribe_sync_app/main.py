#!/usr/bin/env python3
"""
Main entry point for the scribe-sync command line tool.
"""
import sys
import logging
import argparse
import typing as t
from pathlib import Path

from PySide6.QtCore import QCoreApplication, QThreadPool

from scribe_sync_app.config import DOCUMENT_STORE_URL, MAX_WORKERS
from scribe_sync_app.core.errors import JobError, StoreError
from scribe_sync_app.core.formatting import segments_to_markdown
from scribe_sync_app.core.interfaces import DocumentStore
from scribe_sync_app.core.models import JobHandle, MediaKind, SaveState
from scribe_sync_app.core.pipeline import JobPoller
from scribe_sync_app.core.session import TranscriptSession
from scribe_sync_app.data.database import DB
from scribe_sync_app.data.remote import DocumentStoreClient, JobRunnerClient
from scribe_sync_app.event_bus import SignalBus

logger = logging.getLogger(__name__)


# Configure logging
def setup_logging(verbose=False):
    """Set up logging configuration."""
    log_level = logging.DEBUG if verbose else logging.INFO
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(Path.home() / '.scribe_sync_app.log')
        ]
    )

    # Set more restrictive log level for noisy libraries
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)


def _make_store(db: DB) -> DocumentStore:
    """HTTP document store when configured, the local database otherwise."""
    if DOCUMENT_STORE_URL:
        return DocumentStoreClient(DOCUMENT_STORE_URL)
    return db


def _make_pool() -> QThreadPool:
    pool = QThreadPool()
    pool.setMaxThreadCount(MAX_WORKERS)
    return pool


def _exit_when_settled(app: QCoreApplication, session: TranscriptSession) -> None:
    """Quit the event loop once the session has saved or failed to save."""
    session.scheduler.flushStarted.connect(lambda revision: print(f"Saving revision {revision}..."))

    def on_state(state: SaveState):
        if state is SaveState.SAVED:
            logger.info("Document %s saved", session.document_id)
            app.exit(0)
        elif state is SaveState.ERROR:
            logger.error("Saving failed: %s", session.buffer.last_error)
            app.exit(1)

    session.buffer.saveStateChanged.connect(on_state)


def _drive_job(app: QCoreApplication, pool: QThreadPool, poller: JobPoller, runner: JobRunnerClient,
               start: t.Callable[[], t.Any]) -> int:
    """Run the event loop until the job's first snapshot is saved or the job fails."""
    poller.stateChanged.connect(lambda state: print(f"Job {poller.job_id}: {state.value}"))
    poller.failed.connect(lambda error: app.exit(1))
    poller.sessionReady.connect(lambda session: _exit_when_settled(app, session))

    try:
        start()
    except JobError as e:
        logger.error("%s", e)
        runner.close()
        return 1

    code = app.exec()
    poller.stop()
    pool.waitForDone()
    runner.close()
    if code == 0 and poller.session is not None:
        print(f"Saved transcript as document {poller.session.document_id}")
    return code


def _make_bus() -> SignalBus:
    bus = SignalBus()
    bus.jobFinished.connect(lambda job_id: print(f"Job {job_id} finished"))
    bus.balanceRefreshRequested.connect(
        lambda job_id: logger.info("Job %s finished, account balance should be refreshed", job_id)
    )
    return bus


def cmd_transcribe(args, app: QCoreApplication, db: DB, store: DocumentStore, pool: QThreadPool) -> int:
    media_kind = MediaKind.VIDEO if args.video else MediaKind.AUDIO
    record_id = db.insert_transcription(args.media_url, media_kind, args.alias)

    runner = JobRunnerClient()
    poller = JobPoller(
        runner,
        store,
        metadata=db,
        record_id=record_id,
        media_ref=args.media_url,
        media_kind=media_kind,
        bus=_make_bus(),
        thread_pool=pool,
    )
    return _drive_job(app, pool, poller, runner, lambda: poller.run(args.media_url))


def cmd_resume(args, app: QCoreApplication, db: DB, store: DocumentStore, pool: QThreadPool) -> int:
    """Pick up polling of a job submitted by an earlier run."""
    record = db.find_by_job_id(args.job_id)
    if record is None:
        print(f"No transcription found for job {args.job_id}")
        return 1
    if record.document_id:
        print(f"Job {args.job_id} was already saved as document {record.document_id}")
        return 0

    runner = JobRunnerClient()
    poller = JobPoller(
        runner,
        store,
        metadata=db,
        record_id=record.id,
        media_ref=record.media_ref,
        media_kind=record.media_kind,
        bus=_make_bus(),
        thread_pool=pool,
    )

    def start():
        poller.start(JobHandle(job_id=args.job_id))
        # no need to wait a full interval for a job that may be long done
        poller.poll_once()

    return _drive_job(app, pool, poller, runner, start)


def cmd_list(args, app: QCoreApplication, db: DB, store: DocumentStore, pool: QThreadPool) -> int:
    records = db.list_transcriptions()
    if not records:
        print("No transcriptions yet")
        return 0
    for record in records:
        print(
            f"{record.id:>4}  {record.status:<8} {record.job_id or '-':<24} "
            f"{record.document_id or '-':<32} {record.alias or record.media_ref or ''}"
        )
    return 0


def cmd_show(args, app: QCoreApplication, db: DB, store: DocumentStore, pool: QThreadPool) -> int:
    try:
        document = store.read_document(args.document_id)
    except StoreError as e:
        logger.error("%s", e)
        return 1
    print(segments_to_markdown(document.segments, timestamps=args.timestamps))
    print(f"\n({len(document.version_history)} saved versions)")
    return 0


def _edit(args, app: QCoreApplication, store: DocumentStore, pool: QThreadPool, mutate: t.Callable) -> int:
    try:
        session = TranscriptSession.open(store, args.document_id, thread_pool=pool)
    except StoreError as e:
        logger.error("%s", e)
        return 1

    if not mutate(session.buffer):
        print("Nothing to change")
        return 0

    _exit_when_settled(app, session)
    session.scheduler.flush_now()
    code = app.exec()
    session.close()
    pool.waitForDone()
    return code


def cmd_rename_speaker(args, app, db, store, pool) -> int:
    def mutate(buffer):
        changed = buffer.rename_speaker(args.old, args.new)
        print(f"Renamed {changed} segments")
        return changed > 0
    return _edit(args, app, store, pool, mutate)


def cmd_edit_word(args, app, db, store, pool) -> int:
    return _edit(
        args, app, store, pool,
        lambda buffer: buffer.edit_word(args.segment, args.word, args.text),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='scribe-sync', description='Transcription jobs and transcript editing')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('transcribe', help='Submit a media URL and save the transcript')
    p.add_argument('media_url')
    p.add_argument('--video', action='store_true', help='The media is a video')
    p.add_argument('--alias', help='Display name for the transcription')
    p.set_defaults(func=cmd_transcribe)

    p = sub.add_parser('resume', help='Continue polling a job submitted earlier')
    p.add_argument('job_id')
    p.set_defaults(func=cmd_resume)

    p = sub.add_parser('list', help='List transcriptions with their status and document')
    p.set_defaults(func=cmd_list)

    p = sub.add_parser('show', help='Print a stored transcript as Markdown')
    p.add_argument('document_id')
    p.add_argument('--timestamps', action='store_true', help='Prefix paragraphs with start times')
    p.set_defaults(func=cmd_show)

    p = sub.add_parser('rename-speaker', help='Rename a speaker everywhere in a transcript')
    p.add_argument('document_id')
    p.add_argument('old')
    p.add_argument('new')
    p.set_defaults(func=cmd_rename_speaker)

    p = sub.add_parser('edit-word', help='Replace one word of one segment')
    p.add_argument('document_id')
    p.add_argument('segment', type=int)
    p.add_argument('word', type=int)
    p.add_argument('text')
    p.set_defaults(func=cmd_edit_word)
    return parser


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    db = DB()
    store = _make_store(db)
    pool = _make_pool()
    try:
        return args.func(args, app, db, store, pool)
    finally:
        if isinstance(store, DocumentStoreClient):
            store.close()


if __name__ == '__main__':
    sys.exit(main())
