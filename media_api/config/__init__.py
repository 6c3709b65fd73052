from .settings import Settings
from .presets import (
    AUDIO_CONVERT_BITRATES,
    CONVERT_PRESETS,
    DEFAULT_QUALITY,
    QualityPreset,
)

__all__ = [
    "Settings",
    "AUDIO_CONVERT_BITRATES",
    "CONVERT_PRESETS",
    "DEFAULT_QUALITY",
    "QualityPreset",
]
