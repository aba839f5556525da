# checkout_engine/utils/logging.py
import logging
import sys

from checkout_engine.utils.settings import LOG_LEVEL

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_configured = False


def _configure() -> None:
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))

    root = logging.getLogger("checkout_engine")
    root.addHandler(handler)
    root.setLevel(LOG_LEVEL.upper())
    root.propagate = False

    #urllib3 loguje każdy request do bramki
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    _configure()
    return logging.getLogger(name)
