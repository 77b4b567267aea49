"""
Core functionality for Nightcrawler
"""

from .config import Config, load_config
from .exceptions import (
    NightcrawlerError,
    ConfigurationError,
    ParseError,
    TransportError,
    ReportError,
)
from .logger import configure_logging, get_component_logger
from .request import RawRequest, parse_request, load_request_file, request_from_url

__all__ = [
    "Config",
    "load_config",
    "NightcrawlerError",
    "ConfigurationError",
    "ParseError",
    "TransportError",
    "ReportError",
    "configure_logging",
    "get_component_logger",
    "RawRequest",
    "parse_request",
    "load_request_file",
    "request_from_url",
]
