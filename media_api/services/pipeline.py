"""Build ffmpeg invocations for each processing operation.

Everything here is pure: no files are touched and no process is started.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from media_api.config.presets import (
    AUDIO_CONVERT_BITRATES,
    CONVERT_PRESETS,
    DEFAULT_QUALITY,
    MERGE_AUDIO_CODEC,
    MERGE_AUDIO_CODECS,
    MP4_AUDIO_BITRATE,
    WEBM_AUDIO_BITRATE,
    QualityPreset,
)
from media_api.errors import InvalidRange, MissingInput, UnsupportedOperation
from media_api.state.models import (
    ConvertOperation,
    DownloadOperation,
    ExtractAudioOperation,
    MergeOperation,
    TrimOperation,
)

VIDEO_CONTAINERS = frozenset({"mp4", "mkv", "mov", "webm"})
CONVERT_CONTAINERS = frozenset({"mp4", "webm", "mp3", "m4a"})
AUDIO_FORMATS = frozenset({"mp3", "m4a", "aac", "wav"})

OUTPUT_NAMES = {
    "merge": "merged",
    "trim": "trimmed",
    "convert": "converted",
    "extract-audio": "audio",
}

_BASE_ARGS = ("-hide_banner", "-nostdin", "-y")

AnyRequest = Union[DownloadOperation, MergeOperation, TrimOperation, ConvertOperation, ExtractAudioOperation]


@dataclass(frozen=True)
class ExternalCommand:
    program: str
    args: Tuple[str, ...]
    inputs: Tuple[Path, ...]
    output_path: Path

    @property
    def argv(self) -> List[str]:
        return [self.program, *self.args]


def format_seconds(value: float) -> str:
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return text or "0"


def parse_bitrate(value: Union[int, str]) -> int:
    text = str(value).strip().lower()
    if text.endswith("k"):
        text = text[:-1]
    if not text.isdigit() or int(text) <= 0:
        raise UnsupportedOperation(f"Invalid bitrate: {value!r}")
    return int(text)


def convert_preset(container: str, quality: str) -> QualityPreset:
    """(crf, speed) for ``container``; unknown tiers get the default tier."""
    tiers = CONVERT_PRESETS[container]
    return tiers.get(quality, tiers[DEFAULT_QUALITY])


def _audio_tier_bitrate(container: str, quality: str) -> int:
    tiers = AUDIO_CONVERT_BITRATES[container]
    return tiers.get(quality, tiers[DEFAULT_QUALITY])


def validate_request(request: AnyRequest) -> None:
    """Parameter checks that need no inputs, run before any fetch starts."""
    if isinstance(request, DownloadOperation):
        return
    if isinstance(request, MergeOperation):
        _require_container(request.output_format, VIDEO_CONTAINERS, "merge")
    elif isinstance(request, TrimOperation):
        _require_container(request.output_format, VIDEO_CONTAINERS, "trim")
        if request.start_time < 0 or request.end_time <= request.start_time:
            raise InvalidRange(request.start_time, request.end_time)
    elif isinstance(request, ConvertOperation):
        _require_container(request.output_format, CONVERT_CONTAINERS, "convert")
    elif isinstance(request, ExtractAudioOperation):
        _require_container(request.format, AUDIO_FORMATS, "extract-audio")
        if request.format != "wav":
            parse_bitrate(request.bitrate)
    else:
        raise UnsupportedOperation(f"Unsupported operation: {getattr(request, 'operation', request)!r}")


def _require_container(value: str, allowed, operation: str) -> None:
    if value not in allowed:
        raise UnsupportedOperation(
            f"Unsupported format {value!r} for {operation}; expected one of {', '.join(sorted(allowed))}"
        )


def output_extension(request: AnyRequest) -> Optional[str]:
    if isinstance(request, ExtractAudioOperation):
        return request.format
    if isinstance(request, DownloadOperation):
        return None
    return request.output_format


def output_filename(request: AnyRequest) -> Optional[str]:
    ext = output_extension(request)
    if ext is None:
        return None
    return f"{OUTPUT_NAMES[request.operation]}.{ext}"


def build_command(
    request: AnyRequest,
    inputs: Sequence[Path],
    output_path: Path,
    *,
    program: str = "ffmpeg",
) -> Optional[ExternalCommand]:
    """
    Build the ffmpeg command for ``request``.

    Returns None for downloads, whose fetched file is the output as-is.
    Raises UnsupportedOperation, InvalidRange or MissingInput for requests
    that cannot be turned into a command.
    """
    validate_request(request)
    if isinstance(request, DownloadOperation):
        return None

    expected = 2 if isinstance(request, MergeOperation) else 1
    if len(inputs) < expected or not all(inputs[:expected]):
        raise MissingInput(f"{request.operation} needs {expected} input file(s), got {len(inputs)}")
    inputs = [Path(p) for p in inputs[:expected]]

    if isinstance(request, MergeOperation):
        options = _merge_options(request)
    elif isinstance(request, TrimOperation):
        options = _trim_options(request)
    elif isinstance(request, ConvertOperation):
        options = _convert_options(request)
    else:
        options = _extract_audio_options(request)

    args: List[str] = list(_BASE_ARGS)
    for path in inputs:
        args += ["-i", str(path)]
    args += options
    args.append(str(output_path))
    return ExternalCommand(program=program, args=tuple(args), inputs=tuple(inputs), output_path=Path(output_path))


def _merge_options(request: MergeOperation) -> List[str]:
    # video from the first input untouched, audio from the second re-encoded
    return [
        "-c:v", "copy",
        "-c:a", MERGE_AUDIO_CODECS.get(request.output_format, MERGE_AUDIO_CODEC),
        "-map", "0:v:0",
        "-map", "1:a:0",
        "-shortest",
    ]


def _trim_options(request: TrimOperation) -> List[str]:
    return [
        "-ss", format_seconds(request.start_time),
        "-t", format_seconds(request.end_time - request.start_time),
        "-c", "copy",
        "-avoid_negative_ts", "make_zero",
    ]


def _convert_options(request: ConvertOperation) -> List[str]:
    container = request.output_format
    if container == "mp4":
        preset = convert_preset(container, request.quality)
        return [
            "-c:v", "libx264",
            "-crf", str(preset.factor),
            "-preset", preset.speed,
            "-c:a", "aac",
            "-b:a", MP4_AUDIO_BITRATE,
        ]
    if container == "webm":
        preset = convert_preset(container, request.quality)
        return [
            "-c:v", "libvpx-vp9",
            "-crf", str(preset.factor),
            "-b:v", "0",
            "-deadline", preset.speed,
            "-c:a", "libopus",
            "-b:a", WEBM_AUDIO_BITRATE,
        ]
    codec = "libmp3lame" if container == "mp3" else "aac"
    return ["-vn", "-c:a", codec, "-b:a", f"{_audio_tier_bitrate(container, request.quality)}k"]


def _extract_audio_options(request: ExtractAudioOperation) -> List[str]:
    if request.format == "wav":
        # uncompressed, the requested bitrate does not apply
        return ["-vn", "-c:a", "pcm_s16le"]
    codec = "libmp3lame" if request.format == "mp3" else "aac"
    return ["-vn", "-c:a", codec, "-b:a", f"{parse_bitrate(request.bitrate)}k"]
