# hike/services/veo.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from hike.core.errors import MediaJobError
from hike.models.types import MediaRequest
from hike.services.media import JobStatus, MediaClient, sanitize_narration

logger = logging.getLogger("hike.media.veo")

ASPECT_RATIO = "16:9"
RESOLUTION = "720p"


def build_video_prompt(label: str, script: str) -> str:
    return (
        f"Cinematic 3D animation of {label} delivering a high-energy halftime sports report. "
        f"Professional stadium background. Script: {sanitize_narration(script)}"
    )


class VeoMediaClient(MediaClient):
    """Veo long-running video generation through the Gemini API."""

    provider = "veo"
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL = "veo-3.1-fast-generate-preview"

    def __init__(self, credentials, model: Optional[str] = None, **kwargs):
        super().__init__(credentials, **kwargs)
        self.model = model or self.DEFAULT_MODEL

    def _headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self.credentials.request_credential()}

    def build_submit_body(self, request: MediaRequest) -> Dict[str, Any]:
        instance: Dict[str, Any] = {"prompt": build_video_prompt(request.label, request.script)}
        if request.image is not None:
            instance["image"] = {
                "bytesBase64Encoded": request.image.data,
                "mimeType": request.image.mime_type,
            }
        return {
            "instances": [instance],
            "parameters": {"aspectRatio": ASPECT_RATIO, "resolution": RESOLUTION},
        }

    async def submit(self, request: MediaRequest) -> str:
        headers = self._headers()
        r = await self._request(
            "submission",
            "POST",
            f"{self.BASE_URL}/models/{self.model}:predictLongRunning",
            json=self.build_submit_body(request),
            headers=headers,
        )
        name = (r.json() or {}).get("name")
        if not name:
            raise MediaJobError("Video submission returned no operation handle.")
        return name

    async def check(self, job_id: str) -> JobStatus:
        r = await self._request("status check", "GET", f"{self.BASE_URL}/{job_id}", headers=self._headers())
        op = r.json() or {}
        if op.get("error"):
            err = op["error"]
            return JobStatus(done=True, failed=True, error=(err.get("message") if isinstance(err, dict) else str(err)))
        if not op.get("done"):
            return JobStatus(done=False)

        resp = (op.get("response") or {}).get("generateVideoResponse") or {}
        samples = resp.get("generatedSamples") or []
        uri = ((samples[0] or {}).get("video") or {}).get("uri") if samples else None
        if not uri and resp.get("raiMediaFilteredReasons"):
            return JobStatus(done=True, failed=True, error="; ".join(resp["raiMediaFilteredReasons"]))
        return JobStatus(done=True, video_uri=uri)

    def download_url(self, uri: str) -> str:
        # download links need the caller's key as a query parameter
        sep = "&" if "?" in uri else "?"
        return f"{uri}{sep}key={self.credentials.request_credential()}"
