"""Utility modules for AudioQueue"""

from .duration import parse_duration
from .http import close_http_client, get_http_client
from .logging_setup import log_exception, setup_logging

__all__ = [
    "parse_duration",
    "close_http_client",
    "get_http_client",
    "log_exception",
    "setup_logging",
]
