"""Application entry point for the magic-link claim server."""

from __future__ import annotations

import os

import uvicorn

from magic_link.config.settings import AppConfig


def main() -> None:
    """Start the magic-link claim server."""
    config = AppConfig()
    reload = os.getenv("MAGICLINK_RELOAD", "false").lower() in ("1", "true", "yes")
    uvicorn.run(
        "magic_link.api.app:create_app",
        factory=True,
        host=config.server.host,
        port=config.server.port,
        reload=reload,
        log_level=config.server.log_level,
    )


if __name__ == "__main__":
    main()
