"""
Pytest configuration file for the scribe-sync test suite.
"""

import json
import os
import tempfile
import threading
from pathlib import Path

# Headless Qt and an isolated data directory, before the app modules load
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
os.environ.setdefault("SCRIBE_SYNC_DATA_DIR", tempfile.mkdtemp(prefix="scribe_sync_test_"))

import pytest
from PySide6.QtCore import QThreadPool

from scribe_sync_app.core.document import parse_document
from scribe_sync_app.core.errors import DocumentNotFound, StoreError
from scribe_sync_app.core.interfaces import DocumentStore, JobRunner
from scribe_sync_app.core.models import JobHandle, JobStatusReport, Segment
from scribe_sync_app.data.database import DB

# Define path to fixture data
FIXTURE_PATH = Path(__file__).parent / "fixtures" / "runner_outputs.json"


@pytest.fixture(scope="session")
def fixture_data():
    """Load JSON fixture into a python dict."""
    return json.loads(FIXTURE_PATH.read_text(encoding="utf-8"))


@pytest.fixture
def expected_merged(fixture_data):
    return [Segment(**seg) for seg in fixture_data["expected_merged"]]


@pytest.fixture(scope="function")
def tmp_db(tmp_path):
    """Return a file-backed DB that is isolated per test."""
    return DB(tmp_path / "test.db")


@pytest.fixture
def thread_pool():
    """Private pool so worker threads never outlive the test."""
    pool = QThreadPool()
    pool.setMaxThreadCount(2)
    yield pool
    pool.waitForDone(5000)


class InMemoryStore(DocumentStore):
    """Document store keeping serialised payloads in a dict.

    Documents are stored as JSON payloads and decoded on read, so the full
    serialisation path is exercised.
    """

    def __init__(self):
        self.payloads = {}
        self.create_calls = 0
        self.replace_calls = 0
        self._lock = threading.Lock()
        self._next_id = 0

    def create_document(self, document):
        with self._lock:
            self.create_calls += 1
            self._next_id += 1
            document_id = f"doc-{self._next_id}"
            self.payloads[document_id] = json.loads(json.dumps(document.to_payload()))
            return document_id

    def read_document(self, document_id):
        with self._lock:
            payload = self.payloads.get(document_id)
        if payload is None:
            raise DocumentNotFound(document_id)
        return parse_document(payload)

    def replace_document(self, document_id, document):
        with self._lock:
            self.replace_calls += 1
            self.payloads[document_id] = json.loads(json.dumps(document.to_payload()))

    @property
    def write_calls(self):
        return self.create_calls + self.replace_calls


class GatedStore(InMemoryStore):
    """InMemoryStore whose replace blocks until ``gate`` is set."""

    def __init__(self):
        super().__init__()
        self.gate = threading.Event()
        self.active = 0
        self.max_active = 0

    def replace_document(self, document_id, document):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            self.gate.wait(5)
            super().replace_document(document_id, document)
        finally:
            with self._lock:
                self.active -= 1


class FlakyStore(InMemoryStore):
    """InMemoryStore that fails writes while ``failing`` is True."""

    def __init__(self):
        super().__init__()
        self.failing = False

    def replace_document(self, document_id, document):
        if self.failing:
            raise StoreError("store unavailable")
        super().replace_document(document_id, document)


class ScriptedRunner(JobRunner):
    """Job runner replaying a fixed list of status bodies.

    Each ``status`` call consumes one item; the last item repeats forever.
    Exception instances in the script are raised instead of returned.
    """

    def __init__(self, statuses, job_id="job-1", submit_result=None, submit_error=None):
        self.statuses = list(statuses)
        self.job_id = job_id
        self.submit_result = submit_result
        self.submit_error = submit_error
        self.submitted = []
        self.status_calls = 0
        self.closed = False
        self._lock = threading.Lock()

    def submit(self, media_url, engine_params):
        self.submitted.append((media_url, engine_params))
        if self.submit_error is not None:
            raise self.submit_error
        if self.submit_result is not None or self.job_id is None:
            return self.submit_result
        return JobHandle(job_id=self.job_id)

    def status(self, job_id):
        with self._lock:
            self.status_calls += 1
            item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(item, Exception):
            raise item
        return JobStatusReport.model_validate(item)

    def close(self):
        self.closed = True


@pytest.fixture
def memory_store():
    return InMemoryStore()


# Define custom markers for categorizing tests
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow (may take longer to run)")


# Setup logging for tests
@pytest.fixture(scope="session", autouse=True)
def setup_logging():
    """Configure logging for tests."""
    import logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    yield
