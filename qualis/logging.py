import logging
import sys

from qualis.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    level = (level or settings.log_level).upper()
    # No-op when the root logger already has handlers (e.g. under pytest).
    logging.basicConfig(format=LOG_FORMAT, level=level, stream=sys.stdout)
    logging.getLogger().setLevel(level)
    # Uvicorn access lines duplicate the Prometheus request counters.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
