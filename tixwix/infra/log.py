"""Centralized logging configuration."""

import os
import sys

from loguru import logger


log_format = ' | '.join(
    (
        '<lk>{time:YYYY-MM-DD HH:mm:ss.SSS}</>',
        '<lvl>{level:<8}</>',
        '<c>{name}:{function}:{line}</>',
        '{message}',
    )
)


def configure_logging(level: str | None = None) -> None:
    # drop the default handler so records are not printed twice
    logger.remove()
    logger.add(
        sys.stderr,
        level=(level or os.getenv('LOG_LEVEL', 'INFO')).upper(),
        format=log_format,
    )

    log_file = os.getenv('LOG_FILE')
    if log_file:
        logger.add(
            log_file,
            level='DEBUG',
            format=log_format,
            rotation='1 day',
            retention='30 days',
            compression='zip',
            enqueue=True,
        )
