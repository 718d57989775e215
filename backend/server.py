from __future__ import annotations

import logging
import os

import uvicorn

from app.config import get_settings

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def main() -> None:
    settings = get_settings()
    logging.getLogger(__name__).info(
        "Starting ReelCutter on :%d (clips in %s, max %d concurrent tool processes)",
        settings.port,
        settings.data_dir,
        settings.max_processes,
    )
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
