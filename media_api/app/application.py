"""FastAPI application setup."""
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from media_api import __version__
from media_api.config import Settings
from media_api.errors import MediaApiError
from media_api.routes import info_router, process_router, tasks_router
from media_api.services import (
    ExtractorClient,
    Fetcher,
    StreamProber,
    TaskExecutor,
    TranscodeRunner,
    run_process,
)
from media_api.services.process import ProcessRunner
from media_api.state import InMemoryTaskStore, TaskStore
from media_api.storage import CleanupSweeper, TempStorage

from .middleware import RequestContextMiddleware, RequestIdFilter

_logger = logging.getLogger("media_api")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s request_id=%(request_id)s %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Install the application log handler once."""
    if not _logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.addFilter(RequestIdFilter())
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        _logger.addHandler(handler)
    _logger.setLevel(level)
    _logger.propagate = False


async def media_error_handler(request: Request, exc: MediaApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc), "code": exc.code})


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[TaskStore] = None,
    runner: ProcessRunner = run_process,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the application and its pipeline components.

    ``runner`` and ``transport`` replace the subprocess launcher and the HTTP
    transport, which is how the tests run without ffmpeg, yt-dlp or network.
    """
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    storage = TempStorage(settings.temp_dir)
    store = store or InMemoryTaskStore(ttl_seconds=settings.effective_task_ttl)
    extractor = ExtractorClient(settings.ytdlp_command(), runner=runner)
    fetcher = Fetcher(
        storage,
        extractor,
        max_file_size=settings.max_file_size,
        timeout=settings.fetch_timeout,
        max_redirects=settings.max_redirects,
        extra_hosts=settings.extractor_extra_hosts,
        transport=transport,
    )
    executor = TaskExecutor(
        store,
        storage,
        fetcher,
        extractor,
        TranscodeRunner(runner=runner),
        StreamProber(settings.ffprobe_binary, runner=runner),
        ffmpeg_binary=settings.ffmpeg_binary,
    )
    sweeper = CleanupSweeper(
        settings.temp_dir,
        interval=settings.cleanup_interval,
        max_age=settings.cleanup_max_age,
        store=store,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        storage.ensure()
        _logger.info(
            "Media API ready temp_dir=%s max_file_size_mb=%d",
            settings.temp_dir,
            settings.max_file_size // (1024 * 1024),
        )
        sweeper_task = asyncio.create_task(sweeper.run()) if settings.cleanup_enabled else None
        try:
            yield
        finally:
            if sweeper_task is not None:
                sweeper_task.cancel()
                await asyncio.wait([sweeper_task])
            await executor.shutdown()

    app = FastAPI(
        title="Media API",
        description="Download, merge, trim, convert and extract audio from remote media using ffmpeg and yt-dlp",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.storage = storage
    app.state.executor = executor
    app.state.sweeper = sweeper

    app.add_middleware(RequestContextMiddleware, max_body_size=settings.max_body_size)
    app.add_exception_handler(MediaApiError, media_error_handler)

    app.include_router(info_router)
    app.include_router(process_router)
    app.include_router(tasks_router)

    return app


def start_api(settings: Optional[Settings] = None) -> None:
    """Start the API server."""
    settings = settings or Settings.from_env()
    app = create_app(settings)
    _logger.info("Starting uvicorn host=%s port=%s", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)
