"""
Synchronous HTTP client for Nightcrawler.

Scan requests are sent exactly once: there is no retry layer. Redirects are
followed by hand so the verbatim request target of the first hop is not
reused for the redirect location.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from nightcrawler.core.config import ScanningConfig
from nightcrawler.core.exceptions import TransportError
from nightcrawler.core.logger import get_component_logger
from nightcrawler.core.request import RawRequest

logger = get_component_logger("http_client")


@dataclass
class RequestConfig:
    """Configuration for HTTP requests."""
    timeout: float = 30.0
    verify_ssl: bool = False
    follow_redirects: bool = True
    max_redirects: int = 10
    proxy: Optional[str] = None

    @classmethod
    def from_scanning_config(cls, scanning: ScanningConfig) -> "RequestConfig":
        return cls(
            timeout=scanning.request_timeout,
            verify_ssl=scanning.verify_ssl,
            follow_redirects=scanning.follow_redirects,
            max_redirects=scanning.max_redirects,
            proxy=scanning.proxy,
        )


class ScanHTTPClient:
    """Single-shot HTTP client used by the scanner and the replay command."""

    def __init__(
            self,
            request_config: RequestConfig = None,
            transport: Optional[httpx.BaseTransport] = None
    ):
        self.request_config = request_config or RequestConfig()

        client_config = {
            "timeout": httpx.Timeout(self.request_config.timeout),
            "verify": self.request_config.verify_ssl,
            "follow_redirects": False,
        }
        if transport is not None:
            client_config["transport"] = transport
        elif self.request_config.proxy:
            client_config["proxy"] = self.request_config.proxy

        self._client = httpx.Client(**client_config)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def send(self, request: RawRequest) -> httpx.Response:
        """
        Send a request once and read the full body.

        Args:
            request: The request to send

        Returns:
            The final response (after redirects when enabled)

        Raises:
            TransportError: On any network, protocol, timeout or encoding failure
        """
        try:
            outbound = request.build_httpx_request(self._client)
            logger.debug(f"-> {request.method} {request.url}")
            response = self._client.send(outbound)

            redirects = 0
            while self.request_config.follow_redirects and response.next_request is not None:
                if redirects >= self.request_config.max_redirects:
                    raise TransportError(
                        f"Exceeded maximum allowed redirects ({self.request_config.max_redirects})"
                    )
                next_request = response.next_request
                next_request.extensions = {
                    k: v for k, v in next_request.extensions.items() if k != "target"
                }
                response.close()
                logger.debug(f"-> redirect {next_request.method} {next_request.url}")
                response = self._client.send(next_request)
                redirects += 1

            return response
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e
        except httpx.InvalidURL as e:
            raise TransportError(f"InvalidURL: {e}") from e
        except UnicodeError as e:
            raise TransportError(f"Cannot encode request: {e}") from e

    def close(self):
        """Close the underlying connection pool."""
        self._client.close()


def create_http_client(
        scanning: ScanningConfig,
        transport: Optional[httpx.BaseTransport] = None
) -> ScanHTTPClient:
    """
    Factory function to create the HTTP client from configuration.

    Args:
        scanning: Scanning configuration section
        transport: Optional transport (tests pass ``httpx.MockTransport``)

    Returns:
        HTTP client instance
    """
    return ScanHTTPClient(RequestConfig.from_scanning_config(scanning), transport=transport)
