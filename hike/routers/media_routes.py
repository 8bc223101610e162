# hike/routers/media_routes.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from hike.core.deps import Services, get_services

router = APIRouter(prefix="/media", tags=["media"])


@router.get("/{media_id}")
async def get_media(media_id: str, services: Services = Depends(get_services)):
    item = services.store.get(media_id)
    if item is None:
        raise HTTPException(404, "media not found or already released")
    handle, data = item
    return Response(content=data, media_type=handle.mime_type)


@router.delete("/{media_id}")
async def release_media(media_id: str, services: Services = Depends(get_services)):
    if not services.store.release(media_id):
        raise HTTPException(404, "media not found or already released")
    return {"success": True}
