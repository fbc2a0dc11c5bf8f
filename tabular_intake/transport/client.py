"""Async HTTP client for the processing backend.

Wraps httpx.AsyncClient and maps transport failures / unexpected payloads
onto typed exceptions:

- TransportError: network failure, timeout or non-2xx response
- RejectedUploadError: 4xx upload response carrying a backend reason
- MalformedResponseError: 2xx response whose body is not what we expect

No retries are performed here; one call = one request.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from ..models.config_models import BackendConfig
from ..models.job import ProcessingRecord
from ..models.raw_file import RawFile

logger = logging.getLogger(__name__)

USER_AGENT = "tabular-intake/0.1.0"

# 受付 ID を探すキー (バックエンド実装差異を吸収)
JOB_ID_KEYS = ("jobId", "job_id", "file_id", "id")
REASON_KEYS = ("reason", "detail", "error")


class BackendError(Exception):
    """Base class for backend call failures."""


class TransportError(BackendError):
    """Raised on network failure or a non-2xx response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RejectedUploadError(BackendError):
    """Raised when the backend refuses an upload with a reason."""

    def __init__(self, reason: str, status_code: int) -> None:
        super().__init__(f"upload rejected (HTTP {status_code}): {reason}")
        self.reason = reason
        self.status_code = status_code


class MalformedResponseError(BackendError):
    """Raised when a 2xx response body does not have the expected shape."""


class BackendClient:
    """Async client for the backend upload / job status API.

    Parameters
    ----------
    config : BackendConfig
        Base URL, timeout and endpoint path templates.
    transport : httpx.AsyncBaseTransport, optional
        Custom transport (tests pass httpx.MockTransport).
    """

    def __init__(
        self,
        config: BackendConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or BackendConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazily create and return the underlying httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransportError(f"{method} {path} timed out: {exc}") from exc
        except httpx.ConnectError as exc:
            raise TransportError(f"{method} {path} connection error: {exc}") from exc
        except httpx.RequestError as exc:
            raise TransportError(f"{method} {path} request error: {exc}") from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, what: str) -> None:
        if response.is_error:
            raise TransportError(
                f"{what} failed: HTTP {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )

    @staticmethod
    def _json(response: httpx.Response, what: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"{what} returned non-JSON payload: {response.text[:500]}"
            ) from exc

    async def upload(self, raw: RawFile) -> str:
        """POST the file as multipart field 'file' and return the job id.

        Raises
        ------
        TransportError, RejectedUploadError, MalformedResponseError
        """
        mime = raw.mime_type or "application/octet-stream"
        response = await self._send(
            "POST",
            self.config.upload_path,
            files={"file": (raw.name, raw.content, mime)},
        )
        if 400 <= response.status_code < 500:
            reason = _rejection_reason(response)
            if reason is not None:
                raise RejectedUploadError(reason, response.status_code)
        self._raise_for_status(response, "upload")
        return _extract_job_id(self._json(response, "upload"))

    async def fetch_records(self, job_id: str) -> tuple[ProcessingRecord, ...]:
        """GET the ordered per-record status list of a job."""
        path = self.config.records_path.format(job_id=quote(job_id, safe=""))
        response = await self._send("GET", path)
        self._raise_for_status(response, "fetch records")
        body = self._json(response, "fetch records")
        if not isinstance(body, list):
            raise MalformedResponseError(
                f"fetch records returned {type(body).__name__}, expected array"
            )
        try:
            return tuple(ProcessingRecord.from_payload(item) for item in body)
        except ValueError as exc:
            raise MalformedResponseError(f"fetch records: {exc}") from exc

    async def list_files(self) -> list[dict[str, Any]]:
        """GET listing metadata of uploaded files."""
        return await self._get_listing(self.config.files_path, "list files")

    async def list_output_files(self) -> list[dict[str, Any]]:
        """GET listing metadata of generated output files."""
        return await self._get_listing(self.config.output_files_path, "list output files")

    async def download(self, file_id: str | int) -> bytes:
        """GET the raw bytes of a file."""
        path = self.config.download_path.format(file_id=quote(str(file_id), safe=""))
        response = await self._send("GET", path)
        self._raise_for_status(response, "download")
        return response.content

    async def _get_listing(self, path: str, what: str) -> list[dict[str, Any]]:
        response = await self._send("GET", path)
        self._raise_for_status(response, what)
        body = self._json(response, what)
        if not isinstance(body, list) or not all(isinstance(item, dict) for item in body):
            raise MalformedResponseError(f"{what} returned unexpected payload")
        return body


def _rejection_reason(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    for key in REASON_KEYS:
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _extract_job_id(body: Any) -> str:
    if not isinstance(body, dict):
        raise MalformedResponseError(
            f"upload returned {type(body).__name__}, expected object with a job id"
        )
    for key in JOB_ID_KEYS:
        value = body.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, (str, int)) and str(value).strip():
            return str(value).strip()
    raise MalformedResponseError(f"upload response has no job id (keys: {sorted(body)})")
