import logging
import sys

from deps import config


def setup_logging(level: str = None) -> None:
    """Configure root logging once for the service process."""
    level = (level or config.LOG_LEVEL).upper()
    fmt = '%(asctime)s level=%(levelname)s name=%(name)s msg="%(message)s"'
    logging.basicConfig(level=level, format=fmt, stream=sys.stdout)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
