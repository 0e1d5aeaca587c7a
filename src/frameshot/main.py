"""
FrameShot Main Application
==========================

FastAPI entry point for the screenshot service.

Endpoints:
    GET  /            - Service information
    GET  /health      - Liveness probe with admission stats and timeouts
    GET  /ready       - Readiness probe (ffmpeg available?)
    GET  /test        - Diagnostic snapshot (stats and limits)
    POST /screenshot  - Grab one frame (JSON body or query string)
    GET  /screenshot  - Same, query string only
"""

import asyncio
import base64
import logging
import os
import shutil
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response

from frameshot.config import settings
from frameshot.models.error_codes import ErrorKind
from frameshot.models.request import ScreenshotParams
from frameshot.models.result import (
    JPEG_MIME_TYPE,
    ErrorPayload,
    PipelineFailure,
    ScreenshotPayload,
    utc_timestamp,
)
from frameshot.pipeline import ScreenshotPipeline, build_pipeline


logger = logging.getLogger(__name__)


NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


# =============================================================================
# Global State
# =============================================================================

_pipeline: Optional[ScreenshotPipeline] = None
_sweep_task: Optional[asyncio.Task] = None
_ffmpeg_location: Optional[str] = None
_startup_time: float = time.time()


# =============================================================================
# Getters
# =============================================================================

def get_pipeline() -> ScreenshotPipeline:
    """FastAPI dependency returning the shared pipeline."""
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline(settings)
    return _pipeline


def is_ready() -> bool:
    return _ffmpeg_location is not None


# =============================================================================
# Background Tasks
# =============================================================================

async def sweep_scratch_files(
    pipeline: ScreenshotPipeline,
    interval: Optional[float] = None,
    max_age: Optional[float] = None,
) -> None:
    """Periodically remove scratch files a crashed request left behind."""
    if interval is None:
        interval = settings.scratch.sweep_interval_seconds
    if max_age is None:
        max_age = settings.scratch.max_age_seconds

    while True:
        await asyncio.sleep(interval)
        try:
            removed = await asyncio.to_thread(pipeline.scratch.sweep_stale, max_age)
        except Exception:
            # One bad sweep must not end the loop
            logger.exception("Scratch sweep failed")
            continue

        stats = pipeline.admission.stats()
        logger.info(
            f"Sweep removed {removed} file(s). Stats: {stats['processed']} processed "
            f"({stats['success_rate']}% success), load {stats['current_load']}/{stats['max_load']}"
        )


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    global _sweep_task, _ffmpeg_location, _startup_time

    _startup_time = time.time()
    logger.info(f"Starting {settings.service.name} {settings.service.version}")

    _ffmpeg_location = shutil.which(settings.extraction.ffmpeg_path)
    if _ffmpeg_location:
        logger.info(f"FFmpeg available: {_ffmpeg_location}")
    else:
        logger.error(
            f"FFmpeg not found ({settings.extraction.ffmpeg_path}). "
            "Screenshots will fail until it is installed."
        )

    pipeline = get_pipeline()
    logger.info(
        f"Admission capacity {pipeline.admission.capacity}, "
        f"download limit {settings.download.total_timeout}s, "
        f"ffmpeg limit {settings.extraction.timeout}s"
    )

    _sweep_task = asyncio.create_task(
        sweep_scratch_files(pipeline),
        name="scratch_sweep",
    )

    yield

    logger.info("Shutting down...")
    if _sweep_task:
        _sweep_task.cancel()
        try:
            await _sweep_task
        except asyncio.CancelledError:
            pass

    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="FrameShot",
    description="Single-frame screenshots from remote videos",
    version=settings.service.version,
    lifespan=lifespan,
)


@app.middleware("http")
async def no_cache(request: Request, call_next):
    """Disable caching and log request duration."""
    started = time.monotonic()
    response = await call_next(request)
    response.headers.update(NO_CACHE_HEADERS)
    logger.debug(
        f"{request.method} {request.url.path} -> {response.status_code} "
        f"in {int((time.monotonic() - started) * 1000)}ms"
    )
    return response


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": settings.service.name,
        "version": settings.service.version,
        "status": "running",
        "usage": {
            "method": "POST",
            "path": "/screenshot",
            "body": {
                "videoUrl": "https://example.com/video.mp4",
                "timestamp": settings.extraction.default_timestamp,
                "returnBase64": True,
            },
        },
    })


@app.get("/health")
async def health(pipeline: ScreenshotPipeline = Depends(get_pipeline)) -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    budget = pipeline.budget
    return JSONResponse({
        "status": "OK",
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "processing": pipeline.admission.stats(),
        "timeouts": {
            "connect_s": budget.connect,
            "inactivity_s": budget.inactivity,
            "download_s": budget.total_download,
            "ffmpeg_s": budget.extraction,
        },
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe - can the service extract frames?

    Returns 503 when ffmpeg was not found at startup.
    """
    if is_ready():
        return JSONResponse({"status": "ready", "ffmpeg": _ffmpeg_location})
    return JSONResponse(
        {"status": "not_ready", "ffmpeg": None},
        status_code=503,
    )


@app.get("/test")
async def diagnostics(pipeline: ScreenshotPipeline = Depends(get_pipeline)) -> JSONResponse:
    """Diagnostic snapshot: admission stats and effective limits."""
    budget = pipeline.budget
    return JSONResponse({
        "status": "OK",
        "message": "Server ready for sequential screenshot processing",
        "timestamp": utc_timestamp(),
        "stats": pipeline.admission.stats(),
        "config": {
            "max_concurrent": pipeline.admission.capacity,
            "download_timeout_s": budget.total_download,
            "ffmpeg_timeout_s": budget.extraction,
        },
    })


async def _collect_params(request: Request) -> Dict[str, Any]:
    """Merge query string and JSON body; body values win."""
    params: Dict[str, Any] = dict(request.query_params)
    if request.method == "POST":
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            params.update(body)
    return params


def _failure_response(failure: PipelineFailure, stats: dict) -> JSONResponse:
    payload = ErrorPayload.from_failure(failure, server_stats=stats)
    headers = {}
    if failure.kind == ErrorKind.ADMISSION_REJECTED and failure.retry_after:
        headers["Retry-After"] = str(failure.retry_after)
    return JSONResponse(
        payload.model_dump(mode="json"),
        status_code=failure.kind.http_status,
        headers=headers,
    )


@app.api_route("/screenshot", methods=["GET", "POST"])
async def screenshot(
    request: Request,
    pipeline: ScreenshotPipeline = Depends(get_pipeline),
) -> Response:
    """
    Grab one frame from a remote video.

    Returns raw JPEG bytes, or a JSON payload with the base64 image when
    returnBase64 is set.
    """
    params = ScreenshotParams.model_validate(await _collect_params(request))

    result = await pipeline.capture(
        params.video_url,
        timestamp_seconds=params.timestamp,
        inline=params.return_base64,
    )
    stats = pipeline.admission.stats()

    if not result.success:
        return _failure_response(result, stats)

    if params.return_base64:
        payload = ScreenshotPayload(
            request_id=result.request_id,
            image=base64.b64encode(result.image).decode("ascii"),
            size=result.size,
            width=result.width,
            height=result.height,
            processing_time_ms=result.elapsed_ms,
            server_stats=stats,
        )
        return JSONResponse(payload.model_dump(mode="json"))

    return Response(
        content=result.image,
        media_type=JPEG_MIME_TYPE,
        headers={
            "X-Request-ID": result.request_id,
            "X-Success": "true",
            "X-Processing-Time": str(result.elapsed_ms),
        },
    )


# =============================================================================
# Main Entry Point
# =============================================================================

def run() -> None:
    """Console entry point."""
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "frameshot.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run()
