"""Synchronous processing routes: the response body is the produced file."""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from media_api.services import TaskExecutor
from media_api.services.pipeline import AnyRequest
from media_api.state import (
    ConvertOperation,
    DownloadOperation,
    ExtractAudioOperation,
    MergeOperation,
    TrimOperation,
)

from .dependencies import get_executor

router = APIRouter()
_logger = logging.getLogger("media_api")


async def _respond_with_result(executor: TaskExecutor, request: AnyRequest) -> FileResponse:
    task = await executor.execute(request)
    _logger.info("Serving result task_id=%s filename=%s", task.id, task.output_filename)
    return FileResponse(
        path=task.output_path,
        filename=task.output_filename,
        media_type="application/octet-stream",
        background=BackgroundTask(executor.discard, task.id),
    )


@router.post("/download", response_class=FileResponse)
async def api_download(request: DownloadOperation, executor: TaskExecutor = Depends(get_executor)):
    """
    Download a remote file (platform URLs go through yt-dlp).
    """
    return await _respond_with_result(executor, request)


@router.post("/merge", response_class=FileResponse)
async def api_merge(request: MergeOperation, executor: TaskExecutor = Depends(get_executor)):
    """
    Mux the video of ``videoUrl`` with the audio of ``audioUrl``.
    """
    return await _respond_with_result(executor, request)


@router.post("/trim", response_class=FileResponse)
async def api_trim(request: TrimOperation, executor: TaskExecutor = Depends(get_executor)):
    """
    Cut ``startTime``..``endTime`` (seconds) without re-encoding.
    """
    return await _respond_with_result(executor, request)


@router.post("/convert", response_class=FileResponse)
async def api_convert(request: ConvertOperation, executor: TaskExecutor = Depends(get_executor)):
    """
    Re-encode to mp4, webm, mp3 or m4a at a high/medium/low quality tier.
    """
    return await _respond_with_result(executor, request)


@router.post("/extract-audio", response_class=FileResponse)
async def api_extract_audio(request: ExtractAudioOperation, executor: TaskExecutor = Depends(get_executor)):
    """
    Extract the audio track as mp3, m4a/aac or wav.
    """
    return await _respond_with_result(executor, request)
