"""Temp file area shared by all tasks."""
import logging
from pathlib import Path
from typing import Optional, Union

_logger = logging.getLogger("media_api")

PathLike = Union[str, Path]


class TempStorage:
    """Hands out task-namespaced paths inside one directory."""

    def __init__(self, root: PathLike):
        self.root = Path(root)

    def ensure(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def path_for(self, task_id: str, role: str, ext: Optional[str] = None) -> Path:
        """``<root>/<task_id>_<role>[.<ext>]``"""
        name = f"{task_id}_{role}"
        if ext:
            name = f"{name}.{ext.lstrip('.')}"
        return self.root / name

    def task_files(self, task_id: str):
        if not self.root.exists():
            return []
        return sorted(p for p in self.root.glob(f"{task_id}_*") if p.is_file())


def cleanup_files(*files: Optional[PathLike]) -> None:
    """Remove the given files, ignoring ones that are already gone."""
    for file in files:
        if not file:
            continue
        try:
            Path(file).unlink(missing_ok=True)
        except OSError as exc:
            _logger.error("Failed to cleanup file path=%s error=%s", file, exc)
