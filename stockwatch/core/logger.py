import logging
import sys

formatter = logging.Formatter(
    fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

handler = logging.StreamHandler(sys.stdout)
handler.setFormatter(formatter)

logger = logging.getLogger("stockwatch")
logger.setLevel(logging.INFO)
logger.addHandler(handler)
logger.propagate = False


def configure_logging(level: str) -> None:
    """Apply the configured level to the package logger."""
    logger.setLevel(level.upper())


__all__ = ["logger", "configure_logging"]
