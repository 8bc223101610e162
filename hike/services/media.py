# hike/services/media.py
from __future__ import annotations

import asyncio
import logging
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from hike.core.credentials import CredentialProvider
from hike.core.errors import MediaJobError, MediaTimeoutError, classify_provider_error, user_message
from hike.models.types import MediaHandle, MediaOutcome, MediaRequest

logger = logging.getLogger("hike.media")

NARRATION_CHAR_LIMIT = 300
_STRIP_CHARS = re.compile(r'["\r\n]')


def sanitize_narration(text: Optional[str], limit: int = NARRATION_CHAR_LIMIT) -> str:
    """Drop quotes/newlines and cut to `limit` characters before embedding in a render prompt."""
    return _STRIP_CHARS.sub("", text or "")[:limit]


@dataclass
class JobStatus:
    done: bool
    failed: bool = False
    error: Optional[str] = None
    video_uri: Optional[str] = None


# -----------------------------------------------------------
# Local handles for downloaded bytes
# -----------------------------------------------------------
class MediaStore:
    """In-memory table of downloaded videos, served back under /api/media/{id}."""

    def __init__(self):
        self._items: Dict[str, Tuple[MediaHandle, bytes]] = {}

    def create(self, data: bytes, mime_type: str, side: str) -> MediaHandle:
        handle = MediaHandle(media_id=uuid.uuid4().hex, side=side, mime_type=mime_type, size=len(data))
        self._items[handle.media_id] = (handle, data)
        logger.info("media store: created %s side=%s bytes=%d", handle.media_id, side, len(data))
        return handle

    def get(self, media_id: str) -> Optional[Tuple[MediaHandle, bytes]]:
        return self._items.get(media_id)

    def release(self, media_id: str) -> bool:
        released = self._items.pop(media_id, None) is not None
        if released:
            logger.info("media store: released %s", media_id)
        return released

    def release_all(self) -> int:
        n = len(self._items)
        self._items.clear()
        return n

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, media_id: str) -> bool:
        return media_id in self._items


# -----------------------------------------------------------
# Submit / poll / download
# -----------------------------------------------------------
class MediaClient(ABC):
    """
    Shared job lifecycle for asynchronous video providers.

    Subclasses implement `submit`, `check` and optionally `download_url`.
    Polling runs at a fixed interval and gives up after `max_attempts`
    status checks with MediaTimeoutError.
    """

    provider = "media"

    def __init__(
        self,
        credentials: CredentialProvider,
        poll_interval: float = 10.0,
        max_attempts: int = 60,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.credentials = credentials
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.timeout = timeout
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, stage: str, method: str, url: str, **kwargs) -> httpx.Response:
        client = await self._get_client()
        try:
            r = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("%s %s request failed: %s", self.provider, stage, repr(e))
            raise MediaJobError(f"Video {stage} failed: could not reach the video service.") from e
        if not r.is_success:
            text = r.text
            logger.error("%s %s -> %s: %s", self.provider, stage, r.status_code, text[:500])
            quota = classify_provider_error(text, service="video")
            if quota is not None:
                raise quota
            raise MediaJobError(f"Video {stage} failed: HTTP {r.status_code} {self._error_text(text)}".rstrip())
        return r

    @staticmethod
    def _error_text(body: str) -> str:
        return (body or "").strip()[:200]

    @abstractmethod
    async def submit(self, request: MediaRequest) -> str:
        """Start a job for `request` and return its job id."""

    @abstractmethod
    async def check(self, job_id: str) -> JobStatus:
        """One status check for `job_id`."""

    def download_url(self, uri: str) -> str:
        return uri

    async def wait(self, job_id: str) -> JobStatus:
        for attempt in range(1, self.max_attempts + 1):
            status = await self.check(job_id)
            if status.failed:
                raise MediaJobError(f"Video generation failed: {status.error or 'Unknown error'}")
            if status.done:
                logger.info("%s job %s done after %d checks", self.provider, job_id, attempt)
                return status
            logger.info("%s job %s polling %d/%d", self.provider, job_id, attempt, self.max_attempts)
            if attempt < self.max_attempts:
                await self._sleep(self.poll_interval)
        raise MediaTimeoutError(
            f"Video generation timed out after {self.max_attempts} status checks."
        )

    async def download(self, uri: str) -> Tuple[bytes, str]:
        r = await self._request("download", "GET", self.download_url(uri))
        mime = (r.headers.get("content-type") or "video/mp4").split(";")[0].strip()
        if not r.content:
            raise MediaJobError("Video download returned no data.")
        return r.content, mime

    async def render(self, request: MediaRequest) -> Tuple[bytes, str]:
        job_id = await self.submit(request)
        logger.info("%s job %s submitted for %s", self.provider, job_id, request.label)
        status = await self.wait(job_id)
        if not status.video_uri:
            raise MediaJobError("API completed but returned no video URI.")
        return await self.download(status.video_uri)


async def render_matchup(
    client: MediaClient,
    requests: Sequence[MediaRequest],
    store: MediaStore,
) -> List[MediaOutcome]:
    """
    Run every side's job concurrently and settle them all; one side failing
    leaves the others' results intact.
    """

    async def _one(req: MediaRequest) -> MediaHandle:
        data, mime = await client.render(req)
        return store.create(data, mime, req.side)

    results = await asyncio.gather(*(_one(r) for r in requests), return_exceptions=True)

    outcomes: List[MediaOutcome] = []
    for req, res in zip(requests, results):
        if isinstance(res, MediaHandle):
            outcomes.append(MediaOutcome(side=req.side, label=req.label, handle=res))
            continue
        if not isinstance(res, Exception):
            raise res
        logger.warning("video for %s (%s) failed: %s", req.label, req.side, res)
        outcomes.append(MediaOutcome(side=req.side, label=req.label, error=f"{req.label}: {user_message(res)}"))
    return outcomes
