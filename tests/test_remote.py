"""
HTTP adapter tests using httpx.MockTransport.
"""
import json

import httpx
import pytest

from scribe_sync_app.core.document import apply_snapshot
from scribe_sync_app.core.errors import (
    DocumentNotFound, StoreError, SubmissionError, TransientPollError,
)
from scribe_sync_app.core.models import JobState, Segment
from scribe_sync_app.data.remote import DocumentStoreClient, JobRunnerClient


def _runner(handler, **kwargs):
    kwargs.setdefault("user_email", "user@example.com")
    return JobRunnerClient("http://runner.test/", transport=httpx.MockTransport(handler), **kwargs)


def _store(handler, **kwargs):
    return DocumentStoreClient("http://store.test", transport=httpx.MockTransport(handler), **kwargs)


def test_submit_sends_engine_params():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "job-9"})

    params = {"engine": "stable-whisper", "transcribe_args": {"url": "u"}}
    handle = _runner(handler).submit("https://media/x.mp3", params)

    assert handle.job_id == "job-9"
    assert seen["url"] == "http://runner.test/transcribe"
    assert seen["body"] == {
        "file_url": "https://media/x.mp3",
        "input": params,
        "user_email": "user@example.com",
    }


def test_submit_accepts_job_id_key():
    client = _runner(lambda request: httpx.Response(200, json={"jobId": "abc"}), user_email=None)
    assert client.submit("m", {}).job_id == "abc"


@pytest.mark.parametrize("response", [
    httpx.Response(500, text="boom"),
    httpx.Response(200, json={"status": "ok"}),
    httpx.Response(200, text="not json"),
    httpx.Response(200, json=["job"]),
])
def test_submit_errors(response):
    with pytest.raises(SubmissionError):
        _runner(lambda request: response).submit("m", {})


def test_submit_network_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(SubmissionError):
        _runner(handler).submit("m", {})


def test_status():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["email"] = request.url.params.get("user_email")
        return httpx.Response(200, json={"status": "IN_PROGRESS", "extra": 1})

    report = _runner(handler).status("job-9")
    assert seen == {"path": "/status/job-9", "email": "user@example.com"}
    assert report.state is JobState.RUNNING
    assert report.output is None


@pytest.mark.parametrize("response", [
    httpx.Response(502, text="bad gateway"),
    httpx.Response(200, text="<html>"),
    httpx.Response(200, json=[1, 2]),
])
def test_status_errors_are_transient(response):
    with pytest.raises(TransientPollError):
        _runner(lambda request: response).status("job-9")


def test_document_round_trip():
    documents = {}
    headers = []

    def handler(request):
        headers.append(request.headers.get("authorization"))
        if request.method == "POST" and request.url.path == "/documents":
            documents["d1"] = json.loads(request.content)
            return httpx.Response(201, json={"documentId": "d1"})
        document_id = request.url.path.rsplit("/", 1)[-1]
        if request.method == "PUT":
            documents[document_id] = json.loads(request.content)
            return httpx.Response(204)
        if document_id not in documents:
            return httpx.Response(404)
        return httpx.Response(200, json=documents[document_id])

    store = _store(handler, token="secret")
    snapshot = [Segment(speaker="A", text="hi", start=0, end=1)]

    document_id = store.create_document(apply_snapshot(None, snapshot, "file-1"))
    assert document_id == "d1"
    assert documents["d1"]["editedTranscript"] == documents["d1"]["segments"]

    doc = store.read_document("d1")
    store.replace_document("d1", apply_snapshot(doc, snapshot + snapshot))
    assert len(store.read_document("d1").version_history) == 2

    with pytest.raises(DocumentNotFound):
        store.read_document("missing")
    assert set(headers) == {"Bearer secret"}


@pytest.mark.parametrize("method", ["read", "replace", "create"])
def test_document_store_errors(method):
    store = _store(lambda request: httpx.Response(500, text="down"))
    doc = apply_snapshot(None, [])
    with pytest.raises(StoreError) as excinfo:
        if method == "read":
            store.read_document("d1")
        elif method == "replace":
            store.replace_document("d1", doc)
        else:
            store.create_document(doc)
    assert not isinstance(excinfo.value, DocumentNotFound)


def test_replace_on_404_is_store_error():
    store = _store(lambda request: httpx.Response(404))
    with pytest.raises(StoreError):
        store.replace_document("d1", apply_snapshot(None, []))


def test_store_needs_base_url():
    with pytest.raises(ValueError):
        DocumentStoreClient(base_url=None)
