"""Run an external tool and wait for it, without callbacks leaking out."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

_logger = logging.getLogger("media_api")

LineHandler = Callable[[str], None]

CHUNK_SIZE = 64 * 1024


@dataclass
class ProcessResult:
    argv: Sequence[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


ProcessRunner = Callable[..., Awaitable[ProcessResult]]


async def _pump(stream: asyncio.StreamReader, sink: list, on_line: Optional[LineHandler]) -> None:
    # fixed-size reads: yt-dlp -J prints one huge line, ffmpeg progress uses bare \r
    pending = b""
    overflow = False
    while True:
        chunk = await stream.read(CHUNK_SIZE)
        if not chunk:
            break
        sink.append(chunk)
        if on_line is None:
            continue
        *lines, pending = (pending + chunk).split(b"\n")
        for raw in lines:
            if overflow:
                # end of a line too long to report
                overflow = False
                continue
            on_line(raw.decode("utf-8", errors="replace").rstrip("\r"))
        if len(pending) > CHUNK_SIZE:
            pending = b""
            overflow = True
    if on_line is not None and pending and not overflow:
        on_line(pending.decode("utf-8", errors="replace").rstrip("\r"))


def _decode(chunks: list) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")


async def run_process(argv: Sequence[str], *, on_stdout_line: Optional[LineHandler] = None) -> ProcessResult:
    """
    Start ``argv``, drain stdout/stderr and return once the process exits.

    Raises FileNotFoundError when the executable does not exist. If waiting
    fails for any reason, cancellation included, the child is killed before
    the error propagates.
    """
    _logger.debug("Spawning process argv=%s", " ".join(argv))
    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    out: list = []
    err: list = []
    try:
        await asyncio.gather(
            _pump(proc.stdout, out, on_stdout_line),
            _pump(proc.stderr, err, None),
        )
        returncode = await proc.wait()
    finally:
        if proc.returncode is None:
            _logger.warning("Killing process pid=%s program=%s", proc.pid, argv[0])
            proc.kill()
            await proc.wait()

    _logger.debug("Process exited program=%s returncode=%d", argv[0], returncode)
    return ProcessResult(argv=list(argv), returncode=returncode, stdout=_decode(out), stderr=_decode(err))


def tail(text: str, limit: int = 2000) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[-limit:]
