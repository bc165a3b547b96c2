"""
HTTP adapters for the remote job runner and the remote document store.

Both clients are synchronous; the engine calls them from QThreadPool workers.
"""
import logging
import typing as t

import httpx

from scribe_sync_app.config import (
    DOCUMENT_STORE_TOKEN, DOCUMENT_STORE_URL, HTTP_TIMEOUT_S, JOB_RUNNER_URL, USER_EMAIL,
)
from scribe_sync_app.core.document import parse_document
from scribe_sync_app.core.errors import (
    DocumentNotFound, StoreError, SubmissionError, TransientPollError,
)
from scribe_sync_app.core.interfaces import DocumentStore, JobRunner
from scribe_sync_app.core.models import JobHandle, JobStatusReport, TranscriptDocument

logger = logging.getLogger(__name__)


class JobRunnerClient(JobRunner):
    """Client for the transcription job runner.

    Args:
        base_url: Runner base URL
        user_email: Sent with every request so the runner can bill the right account
        timeout: Request timeout in seconds
        transport: Optional httpx transport, used by tests
    """

    def __init__(
        self,
        base_url: str = JOB_RUNNER_URL,
        user_email: t.Optional[str] = USER_EMAIL,
        timeout: float = HTTP_TIMEOUT_S,
        transport: t.Optional[httpx.BaseTransport] = None,
    ):
        self.user_email = user_email
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    def submit(self, media_url: str, engine_params: dict) -> JobHandle:
        body = {"file_url": media_url, "input": engine_params}
        if self.user_email:
            body["user_email"] = self.user_email

        try:
            response = self._client.post("/transcribe", json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise SubmissionError(
                f"Job runner rejected submission ({e.response.status_code}): {e.response.text}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise SubmissionError(f"Job runner request failed: {e}") from e

        job_id = data.get("id") or data.get("jobId") if isinstance(data, dict) else None
        if not job_id:
            raise SubmissionError(f"Job runner response has no job id: {data!r}")
        logger.debug("Runner accepted job %s", job_id)
        return JobHandle(job_id=str(job_id))

    def status(self, job_id: str) -> JobStatusReport:
        params = {"user_email": self.user_email} if self.user_email else None
        try:
            response = self._client.get(f"/status/{job_id}", params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            raise TransientPollError(
                f"Status request for job {job_id} returned {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise TransientPollError(f"Status request for job {job_id} failed: {e}") from e

        if not isinstance(data, dict):
            raise TransientPollError(f"Unexpected status body for job {job_id}: {data!r}")
        return JobStatusReport.model_validate(data)

    def close(self) -> None:
        self._client.close()


class DocumentStoreClient(DocumentStore):
    """Client for a remote store holding whole JSON documents under /documents."""

    def __init__(
        self,
        base_url: t.Optional[str] = DOCUMENT_STORE_URL,
        token: t.Optional[str] = DOCUMENT_STORE_TOKEN,
        timeout: float = HTTP_TIMEOUT_S,
        transport: t.Optional[httpx.BaseTransport] = None,
    ):
        if not base_url:
            raise ValueError("DocumentStoreClient needs a base URL")
        headers = {"Authorization": f"Bearer {token}"} if token else None
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def _request(self, method: str, path: str, document_id: t.Optional[str] = None, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {path} failed: {e}") from e
        if response.status_code == 404 and document_id is not None:
            raise DocumentNotFound(document_id)
        if response.is_error:
            raise StoreError(f"{method} {path} returned {response.status_code}: {response.text}")
        return response

    def read_document(self, document_id: str) -> TranscriptDocument:
        response = self._request("GET", f"/documents/{document_id}", document_id)
        try:
            payload = response.json()
        except ValueError as e:
            raise StoreError(f"Document {document_id} is not valid JSON") from e
        return parse_document(payload)

    def replace_document(self, document_id: str, document: TranscriptDocument) -> None:
        self._request("PUT", f"/documents/{document_id}", json=document.to_payload())

    def create_document(self, document: TranscriptDocument) -> str:
        response = self._request("POST", "/documents", json=document.to_payload())
        try:
            data = response.json()
        except ValueError as e:
            raise StoreError("Create response is not valid JSON") from e
        document_id = data.get("documentId") or data.get("id") if isinstance(data, dict) else None
        if not document_id:
            raise StoreError(f"Create response has no document id: {data!r}")
        return str(document_id)

    def close(self) -> None:
        self._client.close()
