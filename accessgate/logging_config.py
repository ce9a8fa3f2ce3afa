from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Minimal logging configuration for this repo.

    Notes:
    - stdlib logging only; uvicorn already installs handlers.
    - This sets the level for the `accessgate.*` logger tree.
    - Set `ACCESSGATE_LOG_LEVEL=DEBUG` to see individual access decisions.
    """

    normalized = level.upper()
    logging.getLogger("accessgate").setLevel(normalized)
    # Child loggers under accessgate.* inherit this level.
    logging.getLogger("accessgate").propagate = True
