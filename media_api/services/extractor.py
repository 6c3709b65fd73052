"""yt-dlp client: metadata probing and platform downloads."""
import json
import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from media_api.errors import ExtractionError
from media_api.storage import cleanup_files

from .process import ProcessResult, ProcessRunner, run_process, tail

_logger = logging.getLogger("media_api")

# Format ids that already carry an audio track, so they are downloaded as-is
# instead of being paired with bestaudio. Review when yt-dlp's YouTube format
# catalog changes.
COMBINED_FORMATS: Dict[str, str] = {
    "17": "3gp 176x144 mp4v+aac",
    "18": "mp4 640x360 avc1+aac",
    "22": "mp4 1280x720 avc1+aac",
    "36": "3gp 320x240 mp4v+aac",
    "43": "webm 640x360 vp8+vorbis",
}
COMBINED_FORMAT_IDS = frozenset(COMBINED_FORMATS)

QUALITY_RANKING: Tuple[str, ...] = ("2160p", "1440p", "1080p", "720p", "480p", "360p", "240p", "144p")

DEFAULT_SELECTOR = "bestvideo+bestaudio/best"
FALLBACK_SELECTOR = "best"
MERGE_CONTAINER = "mp4"

_LEFTOVER_SUFFIXES = {".part", ".ytdl", ".temp"}


@dataclass
class FormatDescriptor:
    id: str
    quality: str
    container: Optional[str]
    source_url: Optional[str]
    has_video: bool
    has_audio: bool
    size_bytes: Optional[int] = None
    bitrate: Optional[float] = None
    codec: Optional[str] = None
    fps: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MediaInfo:
    id: Optional[str]
    title: Optional[str]
    duration: Optional[float]
    uploader: Optional[str]
    formats: List[FormatDescriptor] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["formats"] = [f.to_dict() for f in self.formats]
        return data


# ----------------------------
# Format classification
# ----------------------------

def _has_codec(value: Any) -> bool:
    return bool(value) and value != "none"


def _quality_rank(label: str) -> int:
    try:
        return QUALITY_RANKING.index(label)
    except ValueError:
        return len(QUALITY_RANKING)


def _video_label(entry: Mapping[str, Any]) -> str:
    height = entry.get("height")
    if height:
        return f"{int(height)}p"
    return entry.get("format_note") or "default"


def _audio_label(entry: Mapping[str, Any]) -> str:
    tbr = entry.get("tbr") or entry.get("abr")
    if tbr:
        return f"audio ({round(tbr)}kbps)"
    return "audio"


def _descriptor(entry: Mapping[str, Any], *, has_video: bool, has_audio: bool) -> FormatDescriptor:
    return FormatDescriptor(
        id=str(entry.get("format_id")),
        quality=_video_label(entry) if has_video else _audio_label(entry),
        container=entry.get("ext"),
        source_url=entry.get("url"),
        has_video=has_video,
        has_audio=has_audio,
        size_bytes=entry.get("filesize") or entry.get("filesize_approx"),
        bitrate=entry.get("tbr"),
        codec=entry.get("vcodec") if has_video else entry.get("acodec"),
        fps=entry.get("fps"),
    )


def classify_formats(entries: Sequence[Mapping[str, Any]]) -> List[FormatDescriptor]:
    """
    Turn yt-dlp ``formats`` entries into sorted descriptors.

    Entries with both codecs and a URL are kept as merged formats, video-only
    entries are kept as they are, and audio-only entries collapse into the
    single highest-bitrate one (first seen wins a tie). The result is ordered
    by ``QUALITY_RANKING``; unranked labels follow in encounter order.
    """
    picked: List[Tuple[int, FormatDescriptor]] = []
    best_audio: Optional[Tuple[int, Mapping[str, Any]]] = None

    for index, entry in enumerate(entries):
        has_video = _has_codec(entry.get("vcodec"))
        has_audio = _has_codec(entry.get("acodec"))
        if has_video and has_audio:
            if entry.get("url"):
                picked.append((index, _descriptor(entry, has_video=True, has_audio=True)))
        elif has_video:
            picked.append((index, _descriptor(entry, has_video=True, has_audio=False)))
        elif has_audio:
            if best_audio is None or (entry.get("tbr") or 0) > (best_audio[1].get("tbr") or 0):
                best_audio = (index, entry)

    if best_audio is not None:
        picked.append((best_audio[0], _descriptor(best_audio[1], has_video=False, has_audio=True)))

    picked.sort(key=lambda item: item[0])
    ordered = [descriptor for _, descriptor in picked]
    ordered.sort(key=lambda d: _quality_rank(d.quality))
    return ordered


def format_selector(format_id: Optional[str]) -> str:
    if not format_id:
        return DEFAULT_SELECTOR
    if format_id in COMBINED_FORMAT_IDS:
        return format_id
    return f"{format_id}+bestaudio"


# ----------------------------
# Client
# ----------------------------

class ExtractorClient:
    """Runs yt-dlp as a subprocess."""

    def __init__(self, command: Sequence[str], runner: ProcessRunner = run_process):
        self.command = tuple(command)
        self.runner = runner

    @staticmethod
    def _header_args(headers: Optional[Mapping[str, str]]) -> List[str]:
        args: List[str] = []
        for name, value in (headers or {}).items():
            args += ["--add-header", f"{name}:{value}"]
        return args

    async def _run(self, args: Sequence[str], log_prefix: str) -> ProcessResult:
        argv = [*self.command, *args]

        def on_line(line: str) -> None:
            if line.startswith("[download]"):
                _logger.debug("%s %s", log_prefix, line)

        try:
            result = await self.runner(argv, on_stdout_line=on_line)
        except FileNotFoundError as exc:
            raise ExtractionError(-1, str(exc), f"yt-dlp is not installed or not available: {exc}") from exc
        if not result.ok:
            raise ExtractionError(result.returncode, tail(result.stderr))
        return result

    async def resolve_formats(self, url: str, headers: Optional[Mapping[str, str]] = None) -> MediaInfo:
        """Dump metadata with ``-J`` and normalize it."""
        _logger.info("yt-dlp resolve_formats url=%s", url)
        start = time.monotonic()
        result = await self._run(
            ["-J", "--no-warnings", "--no-playlist", *self._header_args(headers), url],
            "[ytdlp]",
        )
        try:
            info = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise ExtractionError(0, tail(result.stdout), f"yt-dlp returned invalid JSON: {exc}") from exc

        formats = classify_formats(info.get("formats") or [])
        _logger.info(
            "yt-dlp resolve_formats done url=%s formats=%d elapsed_ms=%d",
            url,
            len(formats),
            int((time.monotonic() - start) * 1000),
        )
        return MediaInfo(
            id=info.get("id"),
            title=info.get("title"),
            duration=info.get("duration"),
            uploader=info.get("uploader") or info.get("channel"),
            formats=formats,
        )

    async def download(
        self,
        url: str,
        local_path: Path,
        format_id: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Path:
        """
        Download ``url`` next to ``local_path``; the extension is picked by yt-dlp.

        Retries once with a plain ``best`` selector when the merged download
        leaves no output file behind.
        """
        local_path = Path(local_path)
        selector = format_selector(format_id)
        start = time.monotonic()

        produced = await self._download_once(url, selector, local_path, headers)
        if produced is None:
            _logger.warning("yt-dlp produced no file, retrying with fallback selector url=%s selector=%s", url, selector)
            produced = await self._download_once(url, FALLBACK_SELECTOR, local_path, headers)
        if produced is None:
            raise ExtractionError(0, "", "yt-dlp finished without producing an output file")
        discard_leftovers(produced)

        _logger.info(
            "yt-dlp download done url=%s path=%s elapsed_ms=%d",
            url,
            produced,
            int((time.monotonic() - start) * 1000),
        )
        return produced

    async def _download_once(
        self,
        url: str,
        selector: str,
        local_path: Path,
        headers: Optional[Mapping[str, str]],
    ) -> Optional[Path]:
        stem = local_path.with_suffix("") if local_path.suffix else local_path
        args = ["-f", selector, "--no-warnings", "--no-playlist", "--newline"]
        if "+" in selector:
            args += ["--merge-output-format", MERGE_CONTAINER]
        args += ["-o", f"{stem}.%(ext)s", *self._header_args(headers), url]

        _logger.info("yt-dlp download start url=%s selector=%s path=%s", url, selector, stem)
        await self._run(args, "[ytdlp]")
        return locate_output(stem)


def locate_output(stem: Path) -> Optional[Path]:
    """Find ``<stem>.<ext>`` written by yt-dlp, skipping partial and per-format files."""
    parent = stem.parent
    if not parent.exists():
        return None
    prefix = f"{stem.name}."
    for candidate in sorted(parent.iterdir()):
        if not candidate.is_file() or not candidate.name.startswith(prefix):
            continue
        ext = candidate.name[len(prefix):]
        if not ext or "." in ext or f".{ext}" in _LEFTOVER_SUFFIXES:
            continue
        return candidate
    return None


def discard_leftovers(output: Path) -> None:
    """Remove yt-dlp's other ``<stem>.*`` files (per-format parts, .part) next to ``output``."""
    stem = output.with_suffix("")
    leftovers = [
        p for p in output.parent.iterdir()
        if p != output and p.is_file() and p.name.startswith(f"{stem.name}.")
    ]
    if leftovers:
        _logger.info("Removing yt-dlp leftovers count=%d stem=%s", len(leftovers), stem)
    cleanup_files(*leftovers)
