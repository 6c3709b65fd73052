from .cleanup import CleanupSweeper
from .tempfiles import TempStorage, cleanup_files

__all__ = [
    "CleanupSweeper",
    "TempStorage",
    "cleanup_files",
]
