"""Entrypoint: python -m rental_chat (or the rental-chat console script)."""
from __future__ import annotations

import uvicorn

from rental_chat.config import settings
from rental_chat.logging_config import configure_logging


def main() -> None:
    configure_logging()
    # log_config=None keeps uvicorn on the root handler, so access logs carry the correlation id.
    uvicorn.run(
        "rental_chat.app:create_app",
        factory=True,
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        log_level=settings.LOG_LEVEL,
        log_config=None,
    )


if __name__ == "__main__":
    main()
