"""Configuration loaded from the environment (and an optional .env file)."""
import os
import shlex
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Read .env if present
load_dotenv()

DEFAULT_TEMP_DIR = "/tmp/getv-ffmpeg"
DEFAULT_MAX_FILE_SIZE = 500 * 1024 * 1024
DEFAULT_MAX_BODY_SIZE = 10 * 1024 * 1024


def _env_truthy(value: Optional[str], *, default: bool = False) -> bool:
    """Parse common truthy/falsey strings from environment variables."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


class Settings(BaseModel):
    """
    Service configuration.

    - temp_dir / max_file_size are read by the fetcher and the cleanup sweeper
    - max_body_size / host / port belong to the HTTP layer
    - *_binary select the external tools
    """

    temp_dir: Path = Field(default=Path(DEFAULT_TEMP_DIR))
    max_file_size: int = Field(default=DEFAULT_MAX_FILE_SIZE, gt=0)
    max_body_size: int = Field(default=DEFAULT_MAX_BODY_SIZE, gt=0)
    host: str = "0.0.0.0"
    port: int = 3000
    fetch_timeout: float = Field(default=30.0, gt=0)
    max_redirects: int = Field(default=10, ge=0)
    cleanup_enabled: bool = True
    cleanup_interval: float = Field(default=3600.0, gt=0)
    cleanup_max_age: float = Field(default=7200.0, gt=0)
    task_ttl: Optional[float] = None
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    ytdlp_binary: Optional[str] = None
    extractor_extra_hosts: List[str] = Field(default_factory=list)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            temp_dir=Path(os.getenv("TEMP_DIR", DEFAULT_TEMP_DIR)),
            max_file_size=_env_int("MAX_FILE_SIZE", DEFAULT_MAX_FILE_SIZE),
            max_body_size=_env_int("MAX_BODY_SIZE", DEFAULT_MAX_BODY_SIZE),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 3000),
            fetch_timeout=_env_float("FETCH_TIMEOUT", 30.0),
            max_redirects=_env_int("MAX_REDIRECTS", 10),
            cleanup_enabled=_env_truthy(os.getenv("CLEANUP_ENABLED"), default=True),
            cleanup_interval=_env_float("CLEANUP_INTERVAL", 3600.0),
            cleanup_max_age=_env_float("CLEANUP_MAX_AGE", 7200.0),
            task_ttl=_env_float("TASK_TTL", 0.0) or None,
            ffmpeg_binary=os.getenv("FFMPEG_BINARY", "ffmpeg"),
            ffprobe_binary=os.getenv("FFPROBE_BINARY", "ffprobe"),
            ytdlp_binary=os.getenv("YTDLP_BINARY") or None,
            extractor_extra_hosts=_env_list("EXTRACTOR_EXTRA_HOSTS"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def effective_task_ttl(self) -> float:
        """Unclaimed tasks expire together with their files unless TASK_TTL says otherwise."""
        return self.task_ttl or self.cleanup_max_age

    def ytdlp_command(self) -> Tuple[str, ...]:
        if self.ytdlp_binary:
            return tuple(shlex.split(self.ytdlp_binary))
        # the installed yt-dlp package, run with this interpreter
        return (sys.executable, "-m", "yt_dlp")
