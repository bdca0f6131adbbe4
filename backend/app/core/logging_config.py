import sys

from loguru import logger

from .config import settings


def setup_logging(level: str | None = None):
    logger.remove()
    logger.add(
        sink=sys.stdout,
        level=(level or settings.log_level).upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level}</level> | {name}:{line} | {message}"
    )
