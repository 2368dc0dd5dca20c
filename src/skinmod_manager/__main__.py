"""Entry point for the standalone API process."""

import uvicorn

from skinmod_manager.config import settings
from skinmod_manager.main import app


def main() -> None:
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
