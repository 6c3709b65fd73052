"""Encoder quality presets.

Plain data consumed by the pipeline builder. A lower quality factor means
higher fidelity; the speed preset trades encode time for compression.
"""
from typing import Dict, NamedTuple


class QualityPreset(NamedTuple):
    factor: int
    speed: str


DEFAULT_QUALITY = "medium"

# per target container: quality tier -> (crf, preset)
CONVERT_PRESETS: Dict[str, Dict[str, QualityPreset]] = {
    "mp4": {
        "high": QualityPreset(18, "slow"),
        "medium": QualityPreset(23, "medium"),
        "low": QualityPreset(28, "fast"),
    },
    # libvpx-vp9: crf with -b:v 0 (constant quality), speed is the -deadline value
    "webm": {
        "high": QualityPreset(24, "good"),
        "medium": QualityPreset(31, "good"),
        "low": QualityPreset(37, "realtime"),
    },
}

# audio-only conversions: quality tier -> bitrate in kbit/s
AUDIO_CONVERT_BITRATES: Dict[str, Dict[str, int]] = {
    "mp3": {"high": 320, "medium": 192, "low": 128},
    "m4a": {"high": 256, "medium": 192, "low": 128},
}

MP4_AUDIO_BITRATE = "192k"
WEBM_AUDIO_BITRATE = "128k"
MERGE_AUDIO_CODEC = "aac"
# the webm muxer only takes vorbis or opus audio
MERGE_AUDIO_CODECS: Dict[str, str] = {"webm": "libopus"}
