"""Process-wide logging configuration."""
from __future__ import annotations

import logging
import logging.config

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Install a single console handler on the ``onthelist`` logger tree.

    Safe to call more than once; only the level is updated on repeat calls.
    """
    global _configured
    if _configured:
        logging.getLogger("onthelist").setLevel(level)
        return
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "format": "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
                    "datefmt": "%H:%M:%S",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "console",
                    "stream": "ext://sys.stderr",
                }
            },
            "loggers": {
                "onthelist": {"handlers": ["console"], "level": level, "propagate": True},
            },
        }
    )
    _configured = True
