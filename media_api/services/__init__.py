from .executor import TaskExecutor
from .extractor import ExtractorClient, FormatDescriptor, MediaInfo, classify_formats, format_selector
from .fetcher import Fetcher, needs_extractor
from .pipeline import ExternalCommand, build_command, validate_request
from .probe import StreamInfo, StreamProber
from .process import ProcessResult, run_process
from .transcoder import TranscodeRunner

__all__ = [
    "TaskExecutor",
    "ExtractorClient",
    "FormatDescriptor",
    "MediaInfo",
    "classify_formats",
    "format_selector",
    "Fetcher",
    "needs_extractor",
    "ExternalCommand",
    "build_command",
    "validate_request",
    "StreamInfo",
    "StreamProber",
    "ProcessResult",
    "run_process",
    "TranscodeRunner",
]
