# hike/routers/show_routes.py
from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from hike.core.deps import Services, get_services
from hike.models.state import PresentationState

logger = logging.getLogger("hike.routes.show")
router = APIRouter(prefix="/show", tags=["show"])


class AssetsUpdate(BaseModel):
    team1: Optional[str] = None
    team2: Optional[str] = None


class DraftsUpdate(BaseModel):
    team1Script: Optional[str] = None
    team2Script: Optional[str] = None
    narrationScript: Optional[str] = None
    stats: Optional[Dict[str, Dict[str, str]]] = None


def _out(state: PresentationState) -> dict:
    return {"success": state.error is None, "state": state.to_dict()}


@router.get("")
async def show_state(services: Services = Depends(get_services)):
    return _out(services.show.state)


@router.post("/load")
async def show_load(services: Services = Depends(get_services)):
    return _out(await services.show.load_data())


@router.post("/assets")
async def show_assets(body: AssetsUpdate, services: Services = Depends(get_services)):
    try:
        state = services.show.set_assets(team1=body.team1, team2=body.team2)
    except ValueError as e:
        raise HTTPException(422, str(e))
    return _out(state)


@router.post("/analyze")
async def show_analyze(services: Services = Depends(get_services)):
    """Generate / Try Again: single-call analysis."""
    return _out(await services.show.generate_analysis())


@router.post("/strategy")
async def show_strategy(services: Services = Depends(get_services)):
    return _out(await services.show.generate_strategy())


@router.post("/scripts")
async def show_scripts(services: Services = Depends(get_services)):
    return _out(await services.show.generate_scripts())


@router.patch("/drafts")
async def show_drafts(body: DraftsUpdate, services: Services = Depends(get_services)):
    state = services.show.update_drafts(
        team1_script=body.team1Script,
        team2_script=body.team2Script,
        narration_script=body.narrationScript,
        stats=body.stats,
    )
    return _out(state)


@router.post("/render")
async def show_render(services: Services = Depends(get_services)):
    return _out(await services.show.render_videos())


@router.post("/next")
async def show_next(services: Services = Depends(get_services)):
    moved = services.show.advance()
    return {**_out(services.show.state), "moved": moved}


@router.post("/back")
async def show_back(services: Services = Depends(get_services)):
    moved = services.show.back()
    return {**_out(services.show.state), "moved": moved}


@router.get("/script", response_class=PlainTextResponse)
async def show_script(services: Services = Depends(get_services)):
    """Print-to-script: the whole halftime report as plain text."""
    text = services.show.broadcast_script()
    if text is None:
        raise HTTPException(409, "Generate the analysis first.")
    return text
