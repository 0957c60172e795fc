"""Entry point: ``python -m inbox_reader``."""

from __future__ import annotations

import uvicorn

from .config import Settings
from .logging import setup_logging


def main() -> None:
    settings = Settings()
    setup_logging(json=settings.log_json, level=settings.log_level)

    uvicorn.run(
        "inbox_reader.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
