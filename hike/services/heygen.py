# hike/services/heygen.py
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from hike.core.errors import MediaJobError
from hike.models.types import MediaRequest
from hike.services.media import JobStatus, MediaClient

logger = logging.getLogger("hike.media.heygen")

# avatar ids of the two mascots saved on the HeyGen account
DEFAULT_AVATARS = {
    "team1": "99b680f78a1d495fbd4d010dde4b1134",  # KC Wolf
    "team2": "8844b93031c74385b4582184740ad287",  # Swoop
}
DEFAULT_VOICE_ID = "1lDUIWe5fg9DMHWxzeSk"


def _message(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    err = data.get("error")
    if isinstance(err, dict):
        return err.get("message") or ""
    return data.get("message") or (err if isinstance(err, str) else "")


class HeyGenMediaClient(MediaClient):
    """Talking-avatar videos from saved HeyGen avatars. Seed images are not used."""

    provider = "heygen"
    BASE_URL = "https://api.heygen.com"

    def __init__(
        self,
        credentials,
        avatars: Optional[Mapping[str, str]] = None,
        voice_id: str = DEFAULT_VOICE_ID,
        background: str = "#FFFFFF",
        **kwargs,
    ):
        super().__init__(credentials, **kwargs)
        self.avatars = dict(avatars or DEFAULT_AVATARS)
        self.voice_id = voice_id
        self.background = background

    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self.credentials.request_credential(), "accept": "application/json"}

    def build_submit_body(self, request: MediaRequest) -> Dict[str, Any]:
        avatar_id = self.avatars.get(request.side)
        if not avatar_id:
            raise MediaJobError(f"No avatar configured for {request.side}.")
        return {
            "caption": False,
            "video_inputs": [{
                "character": {
                    "type": "avatar",
                    "avatar_id": avatar_id,
                    "avatar_style": "normal",
                    "scale": 1,
                    "talking_style": "stable",
                },
                "voice": {
                    "type": "text",
                    "input_text": request.script,
                    "voice_id": self.voice_id,
                    "speed": "1",
                    "pitch": "0",
                },
                "background": {
                    "type": "color",
                    "value": self.background,
                    "play_style": "freeze",
                    "fit": "cover",
                },
            }],
            "dimension": {"width": 1280, "height": 720},
            "test": False,
            "title": f"{request.label} - Halftime Analysis",
        }

    async def submit(self, request: MediaRequest) -> str:
        if request.image is not None:
            logger.debug("heygen ignores the seed image for %s", request.label)
        body = self.build_submit_body(request)
        r = await self._request(
            "submission", "POST", f"{self.BASE_URL}/v2/video/generate", json=body, headers=self._headers()
        )
        data = r.json() or {}
        video_id = (data.get("data") or {}).get("video_id")
        if not video_id:
            raise MediaJobError(f"Video submission returned no video id. {_message(data)}".strip())
        return video_id

    async def check(self, job_id: str) -> JobStatus:
        r = await self._request(
            "status check",
            "GET",
            f"{self.BASE_URL}/v1/video_status.get",
            params={"video_id": job_id},
            headers=self._headers(),
        )
        data = (r.json() or {}).get("data") or {}
        status = data.get("status")
        if status == "completed":
            return JobStatus(done=True, video_uri=data.get("video_url"))
        if status == "failed":
            err = data.get("error")
            msg = _message({"error": err}) if isinstance(err, dict) else (err or None)
            return JobStatus(done=True, failed=True, error=msg)
        return JobStatus(done=False)
