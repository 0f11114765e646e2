import logging
import os
from typing import Any

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logger = logging.getLogger("socialhub")


def log_event(level: int, message: str, **dimensions: Any) -> None:
    """Log a message with structured dimensions (platform, userId, postId...)."""
    dims = {k: v for k, v in dimensions.items() if v is not None}
    logger.log(level, message, extra={"custom_dimensions": dims})
