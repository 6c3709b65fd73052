"""ffmpeg runner."""
import logging
import time

from media_api.errors import ProcessError

from .pipeline import ExternalCommand
from .process import ProcessRunner, run_process

_logger = logging.getLogger("media_api")


class TranscodeRunner:
    def __init__(self, runner: ProcessRunner = run_process):
        self.runner = runner

    async def run(self, command: ExternalCommand) -> None:
        """Run ``command`` to completion; a non-zero exit raises ProcessError with ffmpeg's stderr."""
        _logger.info("ffmpeg start output=%s inputs=%d", command.output_path, len(command.inputs))
        _logger.debug("ffmpeg argv=%s", " ".join(command.argv))
        start = time.monotonic()
        try:
            result = await self.runner(command.argv)
        except FileNotFoundError as exc:
            raise ProcessError(-1, f"{command.program} is not installed or not available: {exc}", command.program) from exc

        if not result.ok:
            _logger.error("ffmpeg failed output=%s returncode=%d", command.output_path, result.returncode)
            raise ProcessError(result.returncode, result.stderr.strip(), command.program)

        _logger.info(
            "ffmpeg done output=%s elapsed_ms=%d",
            command.output_path,
            int((time.monotonic() - start) * 1000),
        )
