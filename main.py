import logging

from media_api.app import create_app, start_api
from media_api.config import Settings

logger = logging.getLogger("media_api")

# ASGI entry point for `uvicorn main:app`
app = create_app()


if __name__ == "__main__":
    settings = Settings.from_env()
    logger.info(
        "Starting media API port=%s temp_dir=%s max_file_size_mb=%d",
        settings.port,
        settings.temp_dir,
        settings.max_file_size // (1024 * 1024),
    )
    start_api(settings)
