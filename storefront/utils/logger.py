"""
Logging for the catalog snapshot and cache-invalidation service.

Every module logs through get_logger("<area>"), which hands back a child of
the "storefront" logger such as storefront.snapshot.builder,
storefront.cache.invalidator or storefront.api.server. The `storefront`
CLI and the uvicorn-served API share the single stdout handler set up
here; LOG_LEVEL picks the threshold for both.
"""
import logging
import os
import sys

# Threshold for rebuild, invalidation and request logs (default: INFO)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logger = logging.getLogger("storefront")
logger.setLevel(LOG_LEVEL)

if not logger.handlers:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(LOG_LEVEL)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    console_handler.setFormatter(formatter)

    logger.addHandler(console_handler)

# Prevent propagation to root logger (avoid duplicate logs)
logger.propagate = False


def get_logger(name: str = None) -> logging.Logger:
    """
    Get the logger for one area of the service.

    Args:
        name: Dotted area such as "snapshot.builder" or "cache.cdn"

    Returns:
        storefront.<name>, or the root storefront logger when name is empty
    """
    if name:
        return logging.getLogger(f"storefront.{name}")
    return logger
