"""
Shared fixtures and test utilities.
"""

import json
import tempfile
from collections.abc import AsyncGenerator, Callable, Generator
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from media_api.app import create_app
from media_api.config import Settings
from media_api.services import (
    ExtractorClient,
    Fetcher,
    ProcessResult,
    StreamProber,
    TaskExecutor,
    TranscodeRunner,
)
from media_api.state import InMemoryTaskStore
from media_api.storage import TempStorage

Handler = Callable[[Sequence[str]], ProcessResult]


class FakeRunner:
    """Stands in for ``run_process``; answers per program name and records argv."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.handlers: Dict[str, Handler] = {}

    def on(self, program: str, handler: Handler) -> None:
        self.handlers[program] = handler

    def calls_for(self, program: str) -> List[List[str]]:
        return [argv for argv in self.calls if argv[0] == program]

    async def __call__(self, argv: Sequence[str], *, on_stdout_line=None) -> ProcessResult:
        self.calls.append(list(argv))
        handler = self.handlers.get(argv[0])
        if handler is None:
            return ProcessResult(argv=list(argv), returncode=0, stdout="", stderr="")
        result = handler(argv)
        if on_stdout_line is not None:
            for line in result.stdout.splitlines():
                on_stdout_line(line)
        return result


def ok(argv: Sequence[str], stdout: str = "") -> ProcessResult:
    return ProcessResult(argv=list(argv), returncode=0, stdout=stdout, stderr="")


def ffmpeg_writes_output(argv: Sequence[str]) -> ProcessResult:
    Path(argv[-1]).write_bytes(b"processed-media")
    return ok(argv)


def ffprobe_reports(*kinds: str) -> Handler:
    payload = {
        "format": {"format_name": "mov,mp4,m4a,3gp,3g2,mj2", "duration": "12.5", "size": "2048", "bit_rate": "1310"},
        "streams": [
            {"codec_type": kind, "codec_name": "h264" if kind == "video" else "aac", "width": 1280 if kind == "video" else None, "height": 720 if kind == "video" else None, "bit_rate": "1000", "r_frame_rate": "30/1"}
            for kind in kinds
        ],
    }
    return lambda argv: ok(argv, json.dumps(payload))


def ytdlp_writes(ext: str = "mp4") -> Handler:
    def handler(argv: Sequence[str]) -> ProcessResult:
        template = argv[argv.index("-o") + 1]
        Path(template.replace("%(ext)s", ext)).write_bytes(b"platform-media")
        return ok(argv, "[download] 100% of 1.00MiB\n")

    return handler


class FakeMediaServer:
    """URL -> canned response map served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.routes: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, url: str, content: bytes = b"", status: int = 200, headers: Optional[dict] = None) -> None:
        self.routes[url] = lambda request: httpx.Response(status, content=content, headers=headers)

    def redirect(self, url: str, location: str, status: int = 302) -> None:
        self.routes[url] = lambda request: httpx.Response(status, headers={"Location": location})

    def handle(self, url: str, fn: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[url] = fn

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404)
        return route(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def temp_dir() -> Generator[Path]:
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def work_dir(temp_dir: Path) -> Path:
    """The media temp directory used by the pipeline."""
    path = temp_dir / "work"
    path.mkdir()
    return path


@pytest.fixture
def settings(work_dir: Path) -> Settings:
    """Provide settings pointing at the temp directory with the sweeper disabled."""
    return Settings(
        temp_dir=work_dir,
        max_file_size=1024,
        max_body_size=4096,
        fetch_timeout=5,
        max_redirects=10,
        cleanup_enabled=False,
        ytdlp_binary="yt-dlp",
    )


@pytest.fixture
def runner() -> FakeRunner:
    """Provide a fake process runner with working ffmpeg/ffprobe/yt-dlp."""
    fake = FakeRunner()
    fake.on("ffmpeg", ffmpeg_writes_output)
    fake.on("ffprobe", ffprobe_reports("video", "audio"))
    fake.on("yt-dlp", ytdlp_writes("mp4"))
    return fake


@pytest.fixture
def media_server() -> FakeMediaServer:
    """Provide a fake remote media host."""
    return FakeMediaServer()


@pytest.fixture
def storage(work_dir: Path) -> TempStorage:
    return TempStorage(work_dir)


@pytest.fixture
def extractor(runner: FakeRunner) -> ExtractorClient:
    return ExtractorClient(["yt-dlp"], runner=runner)


@pytest.fixture
def fetcher(storage: TempStorage, extractor: ExtractorClient, media_server: FakeMediaServer) -> Fetcher:
    return Fetcher(
        storage,
        extractor,
        max_file_size=1024,
        timeout=5,
        max_redirects=10,
        transport=media_server.transport,
    )


@pytest.fixture
def store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def executor(
    store: InMemoryTaskStore,
    storage: TempStorage,
    fetcher: Fetcher,
    extractor: ExtractorClient,
    runner: FakeRunner,
) -> TaskExecutor:
    return TaskExecutor(
        store,
        storage,
        fetcher,
        extractor,
        TranscodeRunner(runner=runner),
        StreamProber("ffprobe", runner=runner),
    )


@pytest.fixture
def app(settings: Settings, runner: FakeRunner, media_server: FakeMediaServer):
    """Provide an application wired to the fake runner and media host."""
    return create_app(settings, runner=runner, transport=media_server.transport)


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient]:
    """Provide an async HTTP client for testing the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def sample_video_url() -> str:
    """Provide a sample platform video URL."""
    return "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


@pytest.fixture
def sample_video_info() -> dict:
    """Provide sample yt-dlp -J output."""
    return {
        "id": "dQw4w9WgXcQ",
        "title": "Sample Video",
        "channel": "Test Channel",
        "duration": 213,
        "formats": [
            {"format_id": "140", "ext": "m4a", "vcodec": "none", "acodec": "mp4a.40.2", "tbr": 129.5, "url": "https://cdn/140"},
            {"format_id": "136", "ext": "mp4", "vcodec": "avc1.4d401f", "acodec": "none", "height": 720, "tbr": 1200, "url": "https://cdn/136"},
            {"format_id": "18", "ext": "mp4", "vcodec": "avc1.42001E", "acodec": "mp4a.40.2", "height": 360, "tbr": 500, "url": "https://cdn/18"},
            {"format_id": "137", "ext": "mp4", "vcodec": "avc1.640028", "acodec": "none", "height": 1080, "fps": 30, "filesize": 9000, "tbr": 4000, "url": "https://cdn/137"},
            {"format_id": "251", "ext": "webm", "vcodec": "none", "acodec": "opus", "tbr": 135.1, "url": "https://cdn/251"},
            {"format_id": "sb0", "ext": "mhtml", "vcodec": "none", "acodec": "none", "url": "https://cdn/sb0"},
        ],
    }
