# hike/core/deps.py
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from hike.core.credentials import EnvCredentialProvider, SelectableCredentialProvider
from hike.core.settings import Settings, load_settings
from hike.services.espn_summary import HEADERS, fetch_game_data
from hike.services.gemini import GeminiClient
from hike.services.heygen import HeyGenMediaClient
from hike.services.media import MediaClient, MediaStore
from hike.services.show import HalftimeShow
from hike.services.veo import VeoMediaClient

logger = logging.getLogger("hike.deps")


class Services:
    """Process-wide objects shared by the routers."""

    def __init__(
        self,
        settings: Settings,
        espn_transport: Optional[httpx.AsyncBaseTransport] = None,
        gemini_transport: Optional[httpx.AsyncBaseTransport] = None,
        media_transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.settings = settings
        self._espn_transport = espn_transport

        self.credentials = SelectableCredentialProvider(EnvCredentialProvider(["GEMINI_API_KEY", "API_KEY"]))
        self.heygen_credentials = EnvCredentialProvider(["HEYGEN_API_KEY"])
        self.store = MediaStore()
        self.gemini = GeminiClient(self.credentials, model=settings.analysis_model, transport=gemini_transport)

        media_kwargs: Dict[str, Any] = {
            "poll_interval": settings.media_poll_interval,
            "max_attempts": settings.media_max_attempts,
            "transport": media_transport,
        }
        if sleep is not None:
            media_kwargs["sleep"] = sleep

        self.media: Optional[MediaClient]
        media_credentials = self.credentials
        if settings.media_provider == "heygen":
            self.media = HeyGenMediaClient(self.heygen_credentials, **media_kwargs)
            media_credentials = self.heygen_credentials
        elif settings.media_provider == "veo":
            self.media = VeoMediaClient(self.credentials, model=settings.video_model, **media_kwargs)
        else:
            logger.warning("unknown media provider %r; video generation disabled", settings.media_provider)
            self.media = None

        self.show = HalftimeShow(
            fetch=self.fetch_game,
            analysis_client=self.gemini,
            credentials=self.credentials,
            media_client=self.media,
            media_credentials=media_credentials,
            store=self.store,
            grounding=settings.grounding,
            allow_placeholder=settings.placeholder_on_feed_failure,
        )

    async def fetch_game(self, event_id: Optional[str] = None) -> Dict[str, Any]:
        eid = event_id or self.settings.event_id
        if self._espn_transport is None:
            return await fetch_game_data(eid)
        async with httpx.AsyncClient(transport=self._espn_transport, headers=HEADERS) as client:
            return await fetch_game_data(eid, client=client)

    async def aclose(self) -> None:
        self.show.close()
        released = self.store.release_all()
        if released:
            logger.info("released %d media handles on shutdown", released)
        await self.gemini.close()
        if self.media is not None:
            await self.media.close()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


_services: Optional[Services] = None


def get_services() -> Services:
    global _services
    if _services is None:
        _services = Services(get_settings())
    return _services


async def shutdown_services() -> None:
    global _services
    if _services is not None:
        await _services.aclose()
        _services = None
