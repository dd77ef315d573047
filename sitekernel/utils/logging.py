import logging
import sys

from sitekernel.models.config import LoggingConfig


ROOT_LOGGER = "sitekernel"


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name}")
    return level


def setup_logging(config: LoggingConfig | None = None) -> logging.Logger:
    """
    Configure the `sitekernel` logger hierarchy.

    Safe to call repeatedly: the stdout handler is installed once and
    later calls only apply the configured levels.
    """
    config = config or LoggingConfig()
    level = _level(config.level)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    logging.getLogger("httpx").setLevel(_level(config.http_client_level))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setLevel(level)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance."""
    if name:
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")
    return logging.getLogger(ROOT_LOGGER)
