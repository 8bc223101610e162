# hike/routers/halftime_routes.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from hike.core.deps import Services, get_services
from hike.models.types import GameSummary
from hike.services.images import ANALYSIS_MAX_EDGE, prepare_image
from hike.services.normalizer import load_summary
from hike.services.prompt_builder import build_analysis_prompt

logger = logging.getLogger("hike.routes")
router = APIRouter(tags=["halftime"])


class AnalyzeRequest(BaseModel):
    summary: Optional[Dict[str, Any]] = None
    images: Optional[Dict[str, str]] = None  # team1/team2 -> data URL
    grounding: Optional[bool] = None


class CredentialRequest(BaseModel):
    apiKey: str


@router.get("/health")
async def api_health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


# ---------------- Game data ----------------
@router.get("/game-data")
async def game_data(
    event: Optional[str] = Query(None, pattern=r"^\d+$"),
    services: Services = Depends(get_services),
):
    """
    Raw ESPN summary plus the normalized two-team view.
    `raw` is null when the placeholder matchup was substituted.
    """
    raw, summary = await load_summary(
        lambda: services.fetch_game(event),
        allow_placeholder=services.settings.placeholder_on_feed_failure,
    )
    res: Dict[str, Any] = {"success": True, "data": {"raw": raw, "summary": summary.to_dict()}}
    if summary.is_placeholder:
        res["warning"] = "Live game data unavailable; placeholder matchup shown."
    logger.info("game-data event=%s placeholder=%s", event or services.settings.event_id, summary.is_placeholder)
    return res


# ---------------- Analysis ----------------
@router.post("/analyze")
async def analyze(body: AnalyzeRequest, services: Services = Depends(get_services)):
    if body.summary:
        try:
            summary = GameSummary.from_dict(body.summary)
        except ValueError as e:
            raise HTTPException(422, str(e))
    else:
        _, summary = await load_summary(
            services.fetch_game,
            allow_placeholder=services.settings.placeholder_on_feed_failure,
        )

    images = {}
    for side in ("team1", "team2"):
        img = prepare_image((body.images or {}).get(side), ANALYSIS_MAX_EDGE)
        if img is not None:
            images[side] = img

    grounding = services.settings.grounding if body.grounding is None else body.grounding
    prompt = build_analysis_prompt(summary, images, schema_mode=not grounding)
    analysis = await services.gemini.generate(
        prompt,
        grounding=grounding,
        temperature=0.0,
        default_names=(summary.team1.name, summary.team2.name),
    )
    return {"success": True, "data": analysis.to_dict(), "summary": summary.to_dict()}


# ---------------- Credential selection ----------------
@router.post("/credentials")
async def select_credential(body: CredentialRequest, services: Services = Depends(get_services)):
    services.credentials.select(body.apiKey)
    logger.info("analysis credential selected at runtime")
    return {"success": True, "hasCredential": True}


@router.delete("/credentials")
async def clear_credential(services: Services = Depends(get_services)):
    services.credentials.clear()
    return {"success": True, "hasCredential": services.credentials.has_credential()}
