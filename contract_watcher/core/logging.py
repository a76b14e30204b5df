"""
Logging configuration

Every record carries a ``chain`` field. Watchers log through
``chain_logger(name)`` so interleaved output from concurrent chains stays
attributable; everything else is tagged ``-``.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from contract_watcher.core.config import Settings, settings as default_settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[chain]: <10}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[chain]} | {name}:{function}:{line} | {message}"

# Client libraries that log every request at DEBUG/INFO
NOISY_LOGGERS = ("web3.providers", "web3.manager", "httpx", "httpcore", "aiohttp.access", "sqlalchemy.engine")


class InterceptHandler(logging.Handler):
    """Forward stdlib records (web3, httpx, solana, sqlalchemy) into loguru"""

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk out of the logging module so loguru reports the real caller
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def chain_logger(chain: str):
    """Logger bound to one watcher's chain name"""
    return logger.bind(chain=chain)


def setup_logging(settings: Optional[Settings] = None):
    """Install console and rotating file sinks, then route stdlib logging through loguru"""
    settings = settings or default_settings

    logger.remove()
    logger.configure(extra={"chain": "-"})

    if settings.LOG_JSON:
        logger.add(sys.stdout, level=settings.LOG_LEVEL, serialize=True)
    else:
        logger.add(sys.stdout, format=CONSOLE_FORMAT, level=settings.LOG_LEVEL, colorize=True)

    if settings.LOG_DIR:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_dir / "watcher.log",
            format=FILE_FORMAT,
            level=settings.LOG_LEVEL,
            rotation="1 day",
            retention="7 days",
            compression="zip",
            enqueue=True,
        )
        logger.add(
            log_dir / "error.log",
            format=FILE_FORMAT,
            level="ERROR",
            rotation="100 MB",
            retention="30 days",
            compression="zip",
            enqueue=True,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(
        f"Logging initialized - level {settings.LOG_LEVEL}, "
        f"{'json' if settings.LOG_JSON else 'text'} console, files in {settings.LOG_DIR or 'none'}"
    )
