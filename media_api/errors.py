"""Error taxonomy shared by the fetch, extraction and transcode pipeline."""
from typing import Optional


class MediaApiError(Exception):
    """Base class for every error the pipeline raises on purpose.

    ``code`` is the stable machine-readable identifier recorded on failed
    tasks, ``status_code`` is the HTTP status the routers answer with.
    """

    code = "media_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class NetworkError(MediaApiError):
    code = "network_error"
    status_code = 502


class UpstreamStatusError(MediaApiError):
    code = "upstream_status"
    status_code = 502

    def __init__(self, upstream_status: int, url: str, message: Optional[str] = None):
        super().__init__(message or f"HTTP {upstream_status}")
        self.upstream_status = upstream_status
        self.url = url


class RedirectLoopError(NetworkError):
    code = "redirect_loop"

    def __init__(self, url: str, hops: int):
        super().__init__(f"Too many redirects ({hops}) while fetching {url}")
        self.url = url
        self.hops = hops


class SizeLimitExceeded(MediaApiError):
    code = "size_limit_exceeded"
    status_code = 413

    def __init__(self, limit: int):
        super().__init__(f"File size exceeds limit of {limit} bytes")
        self.limit = limit


class DownloadTimeout(MediaApiError):
    code = "timeout"
    status_code = 504

    def __init__(self, url: str, seconds: float):
        super().__init__(f"Download timed out after {seconds:g}s")
        self.url = url
        self.seconds = seconds


class ExtractionError(MediaApiError):
    code = "extraction_error"
    status_code = 502

    def __init__(self, exit_code: int, stderr_tail: str, message: Optional[str] = None):
        super().__init__(message or f"yt-dlp failed (code {exit_code}): {stderr_tail}")
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail


class ProcessError(MediaApiError):
    code = "process_error"
    status_code = 500

    def __init__(self, exit_code: int, stderr: str, program: str = "ffmpeg"):
        super().__init__(f"{program} failed (code {exit_code}): {stderr}")
        self.exit_code = exit_code
        self.stderr = stderr
        self.program = program


class UnsupportedOperation(MediaApiError):
    code = "unsupported_operation"
    status_code = 400


class MissingInput(MediaApiError):
    code = "missing_input"
    status_code = 422


class InvalidRange(MediaApiError):
    code = "invalid_range"
    status_code = 400

    def __init__(self, start: float, end: float):
        super().__init__(f"Invalid time range: end ({end:g}) must be greater than start ({start:g})")
        self.start = start
        self.end = end


class TaskNotFound(MediaApiError):
    code = "task_not_found"
    status_code = 404

    def __init__(self, task_id: str):
        super().__init__(f"Task with ID {task_id} not found")
        self.task_id = task_id


class TaskNotReady(MediaApiError):
    code = "task_not_ready"
    status_code = 400

    def __init__(self, task_id: str, status: str):
        super().__init__(f"Task is not completed yet. Current status: {status}")
        self.task_id = task_id
        self.status = status


class InvalidTransition(MediaApiError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, task_id: str, current: str, target: str):
        super().__init__(f"Task {task_id} cannot move from {current} to {target}")
        self.task_id = task_id
        self.current = current
        self.target = target
