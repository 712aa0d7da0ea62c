from .logging import get_logger, setup_logging
from .time_utils import get_timestamp_ms

__all__ = [
    "get_logger",
    "setup_logging",
    "get_timestamp_ms",
]
