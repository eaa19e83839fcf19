"""Shared logger factory.

Configures a plain formatter on first use unless the host application has already configured
logging.
"""

import logging

from hitstats import settings

_configured = False


def get_logger(name: str) -> logging.Logger:
    global _configured

    if not _configured:
        if not logging.getLogger().handlers:
            logging.basicConfig(
                level=settings.LOG_LEVEL,
                format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            )
        _configured = True
    return logging.getLogger(name)
