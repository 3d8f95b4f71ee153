import logging
import sys

from reddit_feeds.shared.config import get_settings


def setup_logging() -> logging.Logger:
    logger = logging.getLogger("reddit_feeds")
    if logger.handlers:
        return logger
    settings = get_settings()
    level = logging.DEBUG if settings.is_development else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )
    handler = logging.StreamHandler(sys.stdout)
    fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    handler.setFormatter(fmt)
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
