# hike/services/espn_summary.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from hike.core.errors import ConnectivityError, HttpStatusError
from hike.core.settings import DEFAULT_EVENT_ID

logger = logging.getLogger("hike.espn")

SUMMARY_URL = "https://site.api.espn.com/apis/site/v2/sports/football/nfl/summary"
HEADERS = {"User-Agent": "Mozilla/5.0", "Accept": "application/json"}


# -----------------------------------------------------------
# Single read-only GET (no retry: "Try Again" is the user's call)
# -----------------------------------------------------------
async def _get_json(
    client: httpx.AsyncClient,
    url: str,
    params: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    try:
        r = await client.get(url, params=params)
    except httpx.HTTPError as e:
        logger.warning("espn _get_json %s failed: %s", url, repr(e))
        raise ConnectivityError("Could not reach the game stats service.") from e

    if not r.is_success:
        body = r.text[:500]
        logger.error("espn _get_json %s -> %s %s", url, r.status_code, body)
        raise HttpStatusError("Game stats service returned an error", r.status_code, body)

    try:
        data = r.json()
    except ValueError as e:
        raise ConnectivityError("Game stats service returned a non-JSON body.") from e
    if not isinstance(data, dict):
        raise ConnectivityError("Game stats service returned an unexpected body.")
    return data


async def fetch_game_data(
    event_id: Optional[str] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """
    Fetch the ESPN match summary for `event_id` and return it untouched.

    The payload schema belongs to ESPN; see services.normalizer for the
    projection we actually rely on.
    """
    params = {"event": event_id or DEFAULT_EVENT_ID}
    logger.info("ESPN summary fetch event=%s", params["event"])

    if client is not None:
        return await _get_json(client, SUMMARY_URL, params)

    async with httpx.AsyncClient(timeout=12.0, headers=HEADERS) as c:
        return await _get_json(c, SUMMARY_URL, params)
