"""Periodic removal of expired temp files."""
import asyncio
import logging
import time
from pathlib import Path
from typing import List, Optional

from media_api.state import TaskStore

_logger = logging.getLogger("media_api")


class CleanupSweeper:
    """
    Deletes temp files older than ``max_age`` seconds, every ``interval``
    seconds.

    Age is taken from the file's mtime. Files are removed whatever state the
    owning task is in; the task store is asked to drop expired tasks on the
    same pass so clients do not poll a task whose file is gone.
    """

    def __init__(
        self,
        directory: Path,
        *,
        interval: float = 3600.0,
        max_age: float = 7200.0,
        store: Optional[TaskStore] = None,
    ):
        self.directory = Path(directory)
        self.interval = interval
        self.max_age = max_age
        self.store = store

    def sweep_once(self, now: Optional[float] = None) -> List[Path]:
        now = time.time() if now is None else now
        if not self.directory.exists():
            return []

        deleted: List[Path] = []
        for path in self.directory.iterdir():
            try:
                if not path.is_file():
                    continue
                age = now - path.stat().st_mtime
                if age <= self.max_age:
                    continue
                path.unlink()
            except FileNotFoundError:
                # removed by its task while we were scanning
                continue
            except OSError as exc:
                _logger.error("Cleanup failed path=%s error=%s", path, exc)
                continue
            deleted.append(path)
            _logger.info("Cleanup deleted expired file name=%s age_s=%d", path.name, int(age))

        if self.store is not None:
            self.store.purge_expired()

        if deleted:
            _logger.info("Cleanup sweep done deleted=%d dir=%s", len(deleted), self.directory)
        return deleted

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        _logger.info(
            "Cleanup sweeper started dir=%s interval_s=%d max_age_s=%d",
            self.directory,
            self.interval,
            self.max_age,
        )
        while True:
            await asyncio.sleep(self.interval)
            try:
                await loop.run_in_executor(None, self.sweep_once)
            except Exception:
                _logger.exception("Cleanup sweep failed dir=%s", self.directory)
