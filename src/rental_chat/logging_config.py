from __future__ import annotations

import logging

from rental_chat.api.middleware.correlation_id import CorrelationIdFilter

LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    """Root handler with the correlation id stamped on every record."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        handler.addFilter(CorrelationIdFilter())
