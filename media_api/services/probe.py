"""Stream/container inspection with ffprobe."""
import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from media_api.errors import ProcessError

from .process import ProcessRunner, run_process, tail

_logger = logging.getLogger("media_api")


@dataclass
class StreamDetails:
    type: Optional[str]
    codec: Optional[str]
    width: Optional[int] = None
    height: Optional[int] = None
    bitrate: Optional[int] = None
    fps: Optional[str] = None


@dataclass
class StreamInfo:
    container: Optional[str]
    duration: Optional[float]
    size: Optional[int]
    bitrate: Optional[int]
    streams: List[StreamDetails] = field(default_factory=list)

    def has_stream(self, kind: str) -> bool:
        return any(s.type == kind for s in self.streams)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_probe(payload: Mapping[str, Any]) -> StreamInfo:
    fmt = payload.get("format") or {}
    streams = [
        StreamDetails(
            type=s.get("codec_type"),
            codec=s.get("codec_name"),
            width=_to_int(s.get("width")),
            height=_to_int(s.get("height")),
            bitrate=_to_int(s.get("bit_rate")),
            fps=s.get("r_frame_rate") if s.get("codec_type") == "video" else None,
        )
        for s in payload.get("streams") or []
    ]
    return StreamInfo(
        container=fmt.get("format_name"),
        duration=_to_float(fmt.get("duration")),
        size=_to_int(fmt.get("size")),
        bitrate=_to_int(fmt.get("bit_rate")),
        streams=streams,
    )


class StreamProber:
    def __init__(self, program: str = "ffprobe", runner: ProcessRunner = run_process):
        self.program = program
        self.runner = runner

    async def probe(self, path: Path) -> StreamInfo:
        argv = [
            self.program,
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(path),
        ]
        try:
            result = await self.runner(argv)
        except FileNotFoundError as exc:
            raise ProcessError(-1, f"{self.program} is not installed or not available: {exc}", self.program) from exc
        if not result.ok:
            raise ProcessError(result.returncode, tail(result.stderr), self.program)

        try:
            payload = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise ProcessError(0, f"invalid JSON output: {exc}", self.program) from exc

        info = parse_probe(payload)
        _logger.debug("Probed path=%s container=%s streams=%d", path, info.container, len(info.streams))
        return info
