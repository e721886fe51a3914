"""Process-wide logging setup."""

import logging
from typing import Optional

from .config import settings
from .request_context import RequestIdFilter

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging once for the embedding process.

    Safe to call repeatedly; handlers installed by a previous call are reused
    and only get the request id filter attached if missing.
    """
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)
    root = logging.getLogger()
    for handler in root.handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
