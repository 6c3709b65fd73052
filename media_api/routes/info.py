"""Service info and media probing routes."""
import datetime
import shutil

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from media_api import __version__
from media_api.services import TaskExecutor

from .dependencies import get_executor
from .schemas import UrlRequest

router = APIRouter()


@router.get("/health", response_class=JSONResponse)
async def health(request: Request):
    settings = request.app.state.settings
    return {
        "status": "ok",
        "ffmpeg": shutil.which(settings.ffmpeg_binary) is not None,
        "ffprobe": shutil.which(settings.ffprobe_binary) is not None,
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
    }


@router.get("/info", response_class=JSONResponse)
async def service_info(request: Request):
    settings = request.app.state.settings
    return {
        "service": "media-api",
        "version": __version__,
        "max_file_size": settings.max_file_size,
        "max_body_size": settings.max_body_size,
        "fetch_timeout": settings.fetch_timeout,
        "cleanup_max_age": settings.cleanup_max_age,
    }


@router.get("/formats", response_class=JSONResponse)
async def api_list_formats(
    url: str = Query(..., min_length=1, description="The URL of the video"),
    executor: TaskExecutor = Depends(get_executor),
):
    """
    Title, duration and selectable formats of a video.
    """
    info = await executor.resolve_formats(url)
    return {"status": "success", "data": info.to_dict()}


@router.post("/formats", response_class=JSONResponse)
async def api_list_formats_post(body: UrlRequest, executor: TaskExecutor = Depends(get_executor)):
    info = await executor.resolve_formats(body.url, body.headers)
    return {"status": "success", "data": info.to_dict()}


@router.post("/probe", response_class=JSONResponse)
async def api_probe(body: UrlRequest, executor: TaskExecutor = Depends(get_executor)):
    """
    Download the file and report container, duration, size and streams.
    """
    info = await executor.probe_streams(body.url, body.headers)
    return {"status": "success", "data": info.to_dict()}
