"""Single delivery attempt for one buffered submission.

``Submitter.attempt`` posts the report to ``{endpoint_base}/submit`` as a
multipart form and classifies what happened.  It never touches the queue
store; acting on the outcome is the coordinator's job.

Classification:

* transport errors, timeouts, 5xx, 408 and 429 -> :class:`RetryableFailure`
* any other 4xx, or a 2xx body with ``success: false`` -> :class:`TerminalFailure`
* other 2xx -> :class:`Delivered`
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Union
from urllib.parse import unquote_to_bytes

import httpx

from feedback_buffer.core.config import settings
from feedback_buffer.models import MediaItem, PendingSubmission

logger = logging.getLogger(__name__)

_MIME_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
    "video/x-msvideo": "avi",
}
_DATA_URI_IMAGE_EXTENSIONS = {
    "image/webp": "webp",
    "image/jpeg": "jpg",
    "image/gif": "gif",
}
_DATA_URI_RE = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(?:;[^,]*)?),(?P<body>.*)$", re.DOTALL)
_RETRYABLE_CLIENT_STATUSES = {408, 429}


@dataclass(frozen=True)
class Delivered:
    remote_id: Optional[str]


@dataclass(frozen=True)
class RetryableFailure:
    reason: str


@dataclass(frozen=True)
class TerminalFailure:
    reason: str


Outcome = Union[Delivered, RetryableFailure, TerminalFailure]


def decode_data_uri(content: str) -> tuple[bytes, str]:
    """Return ``(body, mime_type)`` for a ``data:`` URI; raises ValueError if malformed."""
    match = _DATA_URI_RE.match(content)
    if not match:
        raise ValueError("media content is not a data URI")
    mime = match.group("mime") or "image/png"
    body = match.group("body")
    if ";base64" in match.group("params"):
        try:
            return base64.b64decode(body, validate=True), mime
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"invalid base64 media content: {exc}") from exc
    return unquote_to_bytes(body), mime


def media_extension(item: MediaItem) -> str:
    for prefix, ext in _DATA_URI_IMAGE_EXTENSIONS.items():
        if item.content.startswith(f"data:{prefix}"):
            return ext
    return _MIME_EXTENSIONS.get(item.mime_type, "bin")


def media_filename(item: MediaItem, index: int) -> str:
    prefix = "video" if item.is_video else "screenshot"
    return f"{prefix}-{index}.{media_extension(item)}"


def build_form_data(record: PendingSubmission) -> dict[str, Any]:
    """JSON body for the ``data`` form field, using the endpoint's camelCase keys."""
    report = record.report
    media = record.media_items
    return {
        "title": report.title,
        "description": report.description,
        "priority": report.priority.value,
        "reporterName": report.reporter_name,
        "reporterEmail": report.reporter_email,
        "metadata": report.metadata,
        "mediaCount": len(media),
        "mediaAnnotations": [item.annotations for item in media if item.annotations is not None],
    }


def build_multipart(record: PendingSubmission) -> list[tuple[str, tuple[Any, ...]]]:
    # ``data`` goes in as a filename-less part so the body is multipart even
    # when there is no media.
    parts: list[tuple[str, tuple[Any, ...]]] = [
        ("data", (None, json.dumps(build_form_data(record))))
    ]
    for index, item in enumerate(record.media_items):
        body, mime = decode_data_uri(item.content)
        parts.append(("media", (media_filename(item, index), body, mime)))
    return parts


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        message = data.get("message") or data.get("error")
        if message:
            return str(message)
    return f"HTTP {response.status_code}"


def classify_response(response: httpx.Response) -> Outcome:
    status = response.status_code
    if 200 <= status < 300:
        try:
            data = response.json()
        except ValueError:
            logger.warning("Ingestion endpoint returned %s with a non-JSON body", status)
            return Delivered(remote_id=None)
        if isinstance(data, dict) and data.get("success") is False:
            return TerminalFailure(reason=_error_message(response))
        remote_id = data.get("reportId") if isinstance(data, dict) else None
        return Delivered(remote_id=str(remote_id) if remote_id is not None else None)
    if 400 <= status < 500 and status not in _RETRYABLE_CLIENT_STATUSES:
        return TerminalFailure(reason=_error_message(response))
    return RetryableFailure(reason=_error_message(response))


class Submitter:
    """Posts buffered reports to their ingestion endpoint."""

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float | None = None) -> None:
        self.timeout = timeout or settings.submit_timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def attempt(self, record: PendingSubmission) -> Outcome:
        """Perform exactly one delivery attempt for ``record``."""
        url = f"{record.endpoint_base.rstrip('/')}/submit"
        try:
            files = build_multipart(record)
        except ValueError as exc:
            logger.error(
                "Submission %s has unusable payload: %s", record.id, exc, extra={"record_id": record.id}
            )
            return TerminalFailure(reason=str(exc))

        try:
            logger.debug("POST %s (submission=%s, parts=%s)", url, record.id, len(files))
            response = await self.client.post(
                url,
                files=files,
                headers={"x-api-key": record.credential},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            logger.info(
                "Submission %s timed out: %s", record.id, exc, extra={"record_id": record.id}
            )
            return RetryableFailure(reason=f"timeout: {exc}")
        except httpx.RequestError as exc:
            logger.info(
                "Submission %s could not reach %s: %s",
                record.id,
                url,
                exc,
                extra={"record_id": record.id},
            )
            return RetryableFailure(reason=f"network error: {exc}")

        outcome = classify_response(response)
        logger.debug("Submission %s -> %s", record.id, outcome)
        return outcome

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "Submitter":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


__all__ = [
    "Delivered",
    "Outcome",
    "RetryableFailure",
    "Submitter",
    "TerminalFailure",
    "build_form_data",
    "build_multipart",
    "classify_response",
    "decode_data_uri",
    "media_filename",
]
