"""Drive one processing task from fetch to terminal state."""
import asyncio
import logging
import time
import uuid
from pathlib import Path, PurePosixPath
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import unquote, urlparse

from media_api.errors import MediaApiError, MissingInput, TaskNotFound, TaskNotReady
from media_api.state import Operation, Task, TaskStatus, TaskStore
from media_api.state.models import DownloadOperation, MergeOperation
from media_api.storage import TempStorage, cleanup_files

from .extractor import ExtractorClient, MediaInfo
from .fetcher import Fetcher
from .pipeline import AnyRequest, build_command, output_extension, output_filename, validate_request
from .probe import StreamInfo, StreamProber
from .transcoder import TranscodeRunner

_logger = logging.getLogger("media_api")

CANCELLED_MESSAGE = "Task cancelled"


def download_filename(url: str, produced: Path) -> str:
    """Client-facing name for a plain download."""
    if produced.suffix:
        return f"download{produced.suffix}"
    name = PurePosixPath(unquote(urlparse(url).path)).name
    if name and "." in name.strip("."):
        return name
    return "download"


class TaskExecutor:
    """
    Runs processing requests.

    ``submit`` schedules a task on the event loop and returns at once;
    ``execute`` runs one inline for the synchronous endpoints. Each run only
    touches its own store entry and its own ``<task_id>_*`` temp files.
    """

    def __init__(
        self,
        store: TaskStore,
        storage: TempStorage,
        fetcher: Fetcher,
        extractor: ExtractorClient,
        transcoder: TranscodeRunner,
        prober: StreamProber,
        *,
        ffmpeg_binary: str = "ffmpeg",
    ):
        self.store = store
        self.storage = storage
        self.fetcher = fetcher
        self.extractor = extractor
        self.transcoder = transcoder
        self.prober = prober
        self.ffmpeg_binary = ffmpeg_binary
        self._running: Dict[str, asyncio.Task] = {}

    # ----------------------------
    # Entry points
    # ----------------------------

    def submit(self, request: AnyRequest) -> Task:
        validate_request(request)
        task = self.store.create(Operation(request.operation))
        handle = asyncio.create_task(self.run(task.id, request), name=f"media-task-{task.id}")
        self._running[task.id] = handle
        handle.add_done_callback(lambda _: self._running.pop(task.id, None))
        _logger.info("Queued task task_id=%s operation=%s", task.id, request.operation)
        return task

    async def execute(self, request: AnyRequest) -> Task:
        """Run ``request`` inline. Failures are recorded on the task and re-raised."""
        validate_request(request)
        task = self.store.create(Operation(request.operation))
        try:
            await self.run(task.id, request, reraise=True)
        except BaseException:
            self.discard(task.id)
            raise
        return task

    async def run(self, task_id: str, request: AnyRequest, *, reraise: bool = False) -> None:
        _logger.info("Process task start task_id=%s operation=%s", task_id, request.operation)
        start = time.monotonic()
        try:
            self.store.update(task_id, TaskStatus.processing)
            output = await self._execute(task_id, request)
        except asyncio.CancelledError:
            _logger.warning("Process task cancelled task_id=%s", task_id)
            self._fail(task_id, CANCELLED_MESSAGE, "cancelled")
            raise
        except MediaApiError as exc:
            _logger.error("Process task failed task_id=%s code=%s error=%s", task_id, exc.code, exc)
            self._fail(task_id, str(exc), exc.code)
            if reraise:
                raise
            return
        except Exception as exc:
            _logger.exception("Process task failed task_id=%s error=%s", task_id, exc)
            self._fail(task_id, str(exc) or exc.__class__.__name__, "internal_error")
            if reraise:
                raise
            return

        path, filename = output
        try:
            self.store.update(task_id, TaskStatus.done, output_path=str(path), output_filename=filename)
        except TaskNotFound:
            _logger.warning("Task removed while running, dropping output task_id=%s", task_id)
            cleanup_files(*self.storage.task_files(task_id))
            if reraise:
                raise
            return
        _logger.info(
            "Process task completed task_id=%s output=%s elapsed_ms=%d",
            task_id,
            path,
            int((time.monotonic() - start) * 1000),
        )

    def _fail(self, task_id: str, message: str, code: str) -> None:
        cleanup_files(*self.storage.task_files(task_id))
        task = self.store.get(task_id)
        if task is None or task.status.is_terminal:
            return
        self.store.update(task_id, TaskStatus.failed, error=message, error_code=code)

    # ----------------------------
    # Per-operation plans
    # ----------------------------

    async def _execute(self, task_id: str, request: AnyRequest) -> Tuple[Path, str]:
        headers = request.headers

        if isinstance(request, DownloadOperation):
            path = await self.fetcher.fetch(
                request.url, f"{task_id}_download", headers, format_id=request.format_id
            )
            return path, download_filename(request.url, path)

        if isinstance(request, MergeOperation):
            video_path, audio_path = await self._fetch_all(
                [(request.video_url, f"{task_id}_video"), (request.audio_url, f"{task_id}_audio")],
                headers,
            )
            await self._require_stream(video_path, "video")
            await self._require_stream(audio_path, "audio")
            inputs: Sequence[Path] = [video_path, audio_path]
        else:
            inputs = [await self.fetcher.fetch(request.video_url, f"{task_id}_input", headers)]

        output = self.storage.path_for(task_id, "output", output_extension(request))
        command = build_command(request, inputs, output, program=self.ffmpeg_binary)
        await self.transcoder.run(command)
        cleanup_files(*inputs)
        return output, output_filename(request)

    async def _fetch_all(
        self,
        sources: Sequence[Tuple[str, str]],
        headers: Optional[Mapping[str, str]],
    ) -> List[Path]:
        """Fetch every source concurrently; when one fails the others are cancelled."""
        jobs = [asyncio.ensure_future(self.fetcher.fetch(url, name, headers)) for url, name in sources]
        try:
            return list(await asyncio.gather(*jobs))
        except BaseException:
            for job in jobs:
                job.cancel()
            await asyncio.wait(jobs)
            raise

    async def _require_stream(self, path: Path, kind: str) -> None:
        info = await self.prober.probe(path)
        if not info.has_stream(kind):
            raise MissingInput(f"No {kind} stream found in {kind} input")

    # ----------------------------
    # Task handles
    # ----------------------------

    def get(self, task_id: str) -> Task:
        task = self.store.get(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task

    def consume_result(self, task_id: str) -> Task:
        """Hand a finished task's output to the caller and drop the task."""
        task = self.get(task_id)
        if task.status != TaskStatus.done:
            raise TaskNotReady(task_id, task.status.value)
        self.store.delete(task_id)
        return task

    def discard(self, task_id: str) -> None:
        cleanup_files(*self.storage.task_files(task_id))
        self.store.delete(task_id)

    async def cancel(self, task_id: str) -> Task:
        """Stop a task (killing its running tool), then remove it and its files."""
        task = self.get(task_id)
        handle = self._running.pop(task_id, None)
        if handle is not None and not handle.done():
            handle.cancel()
            await asyncio.wait([handle])
        task = self.store.get(task_id) or task
        if not task.status.is_terminal:
            self.store.update(task_id, TaskStatus.failed, error=CANCELLED_MESSAGE, error_code="cancelled")
        self.discard(task_id)
        _logger.info("Cancelled task task_id=%s", task_id)
        return task

    async def shutdown(self) -> None:
        handles = [h for h in self._running.values() if not h.done()]
        for handle in handles:
            handle.cancel()
        if handles:
            await asyncio.wait(handles)
        _logger.info("Executor shut down cancelled=%d", len(handles))

    # ----------------------------
    # Probes
    # ----------------------------

    async def resolve_formats(self, url: str, headers: Optional[Mapping[str, str]] = None) -> MediaInfo:
        return await self.extractor.resolve_formats(url, headers)

    async def probe_streams(self, url: str, headers: Optional[Mapping[str, str]] = None) -> StreamInfo:
        probe_id = str(uuid.uuid4())
        try:
            path = await self.fetcher.fetch(url, f"{probe_id}_probe", headers)
            return await self.prober.probe(path)
        finally:
            cleanup_files(*self.storage.task_files(probe_id))
