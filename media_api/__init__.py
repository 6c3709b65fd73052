"""Remote media processing service built on ffmpeg and yt-dlp."""

__version__ = "1.0.0"
