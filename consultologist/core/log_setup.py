"""
Logging setup for the consultation service.

Modules log through the shared loguru `logger`. This module only decides
where records go: a human-readable stderr sink, or serialized JSON lines
for log aggregation. Per-request fields (request_id) are attached with
`logger.contextualize()` by the pipeline and the HTTP layer.
"""

import sys

from loguru import logger

_TEXT_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> | {extra[request_id]} | <level>{message}</level>"
)


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Replace loguru's default sink.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ...)
        json_output: Emit one serialized JSON object per record
    """
    logger.remove()
    logger.configure(extra={"request_id": "-"})

    if json_output:
        logger.add(sys.stderr, level=level.upper(), serialize=True, backtrace=False)
    else:
        logger.add(sys.stderr, level=level.upper(), format=_TEXT_FORMAT, backtrace=False)

    logger.debug(f"Logging configured | Level: {level.upper()} | JSON: {json_output}")
