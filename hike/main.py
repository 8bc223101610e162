# hike/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import time

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from hike.core.deps import Services, get_services, get_settings, shutdown_services
from hike.core.errors import HikeError
from hike.routers import (
    halftime_routes,
    media_routes,
    show_routes,
)

# ------------ Logging ------------
logging.basicConfig(level=getattr(logging, get_settings().log_level, logging.INFO))
logger = logging.getLogger("hike")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("HIKE starting (media provider=%s)", get_settings().media_provider)
    yield
    # releases downloaded videos; in-flight jobs are not aborted
    await shutdown_services()
    logger.info("HIKE stopped")


# ------------ App ------------
app = FastAPI(
    title="HIKE - Halftime Insights and Key Evaluations",
    version="1.0.0",
    docs_url="/docs",
    redoc_url=None,
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


# ------------ Access log ------------
# one line per request, including ones that end in an unhandled error
class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        t0 = time.perf_counter()
        try:
            response = await call_next(request)
            status = response.status_code
        except Exception:
            status = 500
            raise
        finally:
            dt = (time.perf_counter() - t0) * 1000
            logger.info(
                "ACCESS %s %s q=%s -> %s in %.1fms",
                request.method,
                request.url.path,
                request.url.query,
                status,
                dt,
            )
        return response


app.add_middleware(AccessLogMiddleware)

# ------------ CORS ------------
# The halftime page runs on its own dev server (Vite, :3000) or host;
# HIKE_CORS_ORIGINS narrows it to those origins. Keys travel in bodies, not cookies.
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=False,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type"],
)


# ------------ Error handlers ------------
@app.exception_handler(HikeError)
async def _hike_error(request: Request, exc: HikeError):
    logger.warning("%s %s failed (%s): %s", request.method, request.url.path, exc.kind, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.user_message, "kind": exc.kind},
    )


@app.exception_handler(Exception)
async def _unhandled(request: Request, exc: Exception):
    logger.exception("UNHANDLED ERROR: %s %s", request.method, request.url)
    return JSONResponse(status_code=500, content={"success": False, "error": "internal_error"})


# ------------ Health & status ------------
@app.get("/health")
async def health():
    return {"ok": True}


@app.get("/status")
async def status(services: Services = Depends(get_services)):
    settings = services.settings
    return {
        "ok": True,
        "has_gemini_key": services.credentials.has_credential(),
        "has_heygen_key": services.heygen_credentials.has_credential(),
        "media_provider": settings.media_provider,
        "event_id": settings.event_id,
        "grounding": settings.grounding,
        "placeholder_on_feed_failure": settings.placeholder_on_feed_failure,
    }


# ------------ Mount routers ------------
app.include_router(halftime_routes.router, prefix="/api")
app.include_router(show_routes.router, prefix="/api")
app.include_router(media_routes.router, prefix="/api")
