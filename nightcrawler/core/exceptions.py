"""
Exception hierarchy for Nightcrawler.

Only failures that must stop a run are raised. Per test case transport
failures are wrapped in TransportError by the HTTP client and stored on the
ScanResult by the executor.
"""


class NightcrawlerError(Exception):
    """Base class for all Nightcrawler errors."""


class ConfigurationError(NightcrawlerError):
    """Malformed vector / fuzzing input or an unusable generator setup."""


class ParseError(NightcrawlerError):
    """A saved raw HTTP request could not be parsed."""


class TransportError(NightcrawlerError):
    """Network, connection or timeout failure of a single request."""


class ReportError(NightcrawlerError, OSError):
    """A report or output file could not be written."""
