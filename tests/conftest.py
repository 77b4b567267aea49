"""
Shared fixtures for Nightcrawler tests.

HTTP traffic never leaves the process: every client is built on an
``httpx.MockTransport``. The default handler echoes the verbatim request
target and the request headers back in the body, so any injected payload is
reflected.
"""

from typing import Callable

import httpx
import pytest

from nightcrawler.core.config import ScanningConfig
from nightcrawler.core.http_client import create_http_client
from nightcrawler.core.request import parse_request
from nightcrawler.scanning.vectors import AttackVector

RAW_REQUEST = (
    b"GET /search?q=1&lang=en HTTP/1.1\r\n"
    b"Host: example.test\r\n"
    b"User-Agent: nightcrawler-test\r\n"
    b"Accept: text/html\r\n"
    b"\r\n"
)


def echo_handler(request: httpx.Request) -> httpx.Response:
    """Reflect the request line target and header values."""
    target = request.extensions.get("target", request.url.raw_path)
    body = b"echo " + target + b"\n"
    for key, value in request.headers.raw:
        body += key + b": " + value + b"\n"
    return httpx.Response(200, content=body)


@pytest.fixture
def raw_request() -> bytes:
    return RAW_REQUEST


@pytest.fixture
def baseline():
    """Baseline request ``GET http://example.test/search?q=1&lang=en``."""
    return parse_request(RAW_REQUEST)


@pytest.fixture
def sql_vector():
    return AttackVector(Vector="'", Test="SQL syntax", SqlInjection=True)


@pytest.fixture
def make_client():
    """Factory building scan clients on a mock transport."""
    clients = []

    def factory(handler: Callable[[httpx.Request], httpx.Response] = echo_handler, **scanning):
        client = create_http_client(ScanningConfig(**scanning), transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()


@pytest.fixture
def echo_client(make_client):
    return make_client(echo_handler)
