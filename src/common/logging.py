import sys

from loguru import logger

from common.config import config

# Loguru config: coloured lines locally, JSON records elsewhere for the log collector
logger.remove()
if config.ENVIRONMENT == "development":
    logger.add(sys.stderr, format=config.log_format, level=config.log_level, colorize=True)
else:
    logger.add(sys.stderr, level=config.log_level, serialize=True)


def get_logger(name: str | None = None):
    return logger.bind(name=name) if name else logger
