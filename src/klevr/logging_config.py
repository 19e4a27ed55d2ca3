from __future__ import annotations

import logging

from klevr.config import get_settings

_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")

_configured = False


def configure_logging(*, force: bool = False) -> None:
    """Install the root handler once per process; library chatter stays at WARNING."""
    global _configured
    if _configured and not force:
        return

    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        force=force,
    )
    if level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    _configured = True
