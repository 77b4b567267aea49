"""
Execution and reflection detection of single test cases.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import httpx

from ..core.exceptions import ReportError, TransportError
from ..core.http_client import ScanHTTPClient
from ..core.request import RawRequest
from .mutators import TestCase
from .vectors import AttackVector, BASELINE_VECTOR

logger = logging.getLogger(__name__)

BASELINE_TARGET = "BaseRequest"

HeaderItems = Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class RequestSnapshot:
    """What was actually sent (the last hop when redirects were followed)."""
    method: str
    url: str
    headers: HeaderItems
    content_length: int
    protocol: str


@dataclass(frozen=True)
class ResponseSnapshot:
    """Status line and headers of the final response."""
    status_code: int
    headers: HeaderItems
    content_length: Optional[int]
    protocol: str


@dataclass(frozen=True)
class ScanResult:
    """Outcome of one executed test case (or of the baseline)."""
    vector: AttackVector
    duration_ms: int
    target: str
    request: Optional[RequestSnapshot] = None
    response: Optional[ResponseSnapshot] = None
    error: Optional[str] = None
    found: bool = False
    response_body_length: int = 0
    url: str = ""
    saved_body_path: Optional[str] = None

    @property
    def is_baseline(self) -> bool:
        return self.target == BASELINE_TARGET

    @property
    def failed(self) -> bool:
        return self.error is not None


def detect_reflection(body: bytes, vector: AttackVector) -> bool:
    """Case-sensitive literal search of the vector's detection text."""
    marker = vector.detection_text
    if not marker:
        return False
    return marker.encode("utf-8") in body


def _sent_url(request: RawRequest, sent: httpx.Request) -> str:
    # The first hop goes out with a verbatim target; httpx only knows "/".
    if "target" in sent.extensions:
        return f"{request.scheme}://{request.host}{request.target}"
    return str(sent.url)


def _snapshot_request(request: RawRequest, response: httpx.Response) -> RequestSnapshot:
    sent = response.request
    try:
        content_length = len(sent.content)
    except httpx.RequestNotRead:
        content_length = int(sent.headers.get("content-length", 0))
    return RequestSnapshot(
        method=sent.method,
        url=_sent_url(request, sent),
        headers=tuple(sent.headers.multi_items()),
        content_length=content_length,
        protocol=response.http_version,
    )


def _snapshot_response(response: httpx.Response) -> ResponseSnapshot:
    length = response.headers.get("content-length")
    try:
        content_length = int(length) if length is not None else None
    except ValueError:
        content_length = None
    return ResponseSnapshot(
        status_code=response.status_code,
        headers=tuple(response.headers.multi_items()),
        content_length=content_length,
        protocol=response.http_version,
    )


class Executor:
    """Runs test cases one at a time; failures become error-annotated results."""

    def __init__(self, client: ScanHTTPClient, output_directory: Optional[Union[str, Path]] = None):
        self.client = client
        self.output_directory = Path(output_directory) if output_directory else None
        if self.output_directory:
            try:
                self.output_directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ReportError(f"Cannot create output directory {self.output_directory}: {e}") from e

    def run_baseline(self, baseline: RawRequest) -> ScanResult:
        """Execute the unmutated request with the empty sentinel vector."""
        return self.execute(baseline, BASELINE_VECTOR, BASELINE_TARGET)

    def run(self, test_case: TestCase) -> ScanResult:
        """Execute a test case; one whose mutation failed is reported without sending."""
        if test_case.error:
            return ScanResult(
                vector=test_case.vector,
                duration_ms=0,
                target=test_case.target,
                error=test_case.error,
                url=test_case.request.url,
            )
        return self.execute(test_case.request, test_case.vector, test_case.target)

    def execute(self, request: RawRequest, vector: AttackVector, target: str) -> ScanResult:
        """
        Send ``request`` once and build its result.

        Args:
            request: Request to send
            vector: Vector injected into the request
            target: Target descriptor, e.g. ``"urlquery id"``

        Returns:
            The result; transport failures are stored in ``error``
        """
        started_ns = time.time_ns()
        started = time.perf_counter()
        try:
            response = self.client.send(request)
        except TransportError as e:
            duration_ms = int((time.perf_counter() - started) * 1000)
            logger.warning(f"{target} ({vector.payload!r}) failed: {e}")
            return ScanResult(
                vector=vector,
                duration_ms=duration_ms,
                target=target,
                error=str(e),
                url=request.url,
            )
        duration_ms = int((time.perf_counter() - started) * 1000)

        body = response.content
        found = detect_reflection(body, vector)
        if found:
            logger.info(f"Reflection found: {target} <- {vector.payload!r} (HTTP {response.status_code})")
        else:
            logger.debug(f"{target} <- {vector.payload!r}: HTTP {response.status_code}, "
                         f"{len(body)} bytes, {duration_ms} ms")

        return ScanResult(
            vector=vector,
            duration_ms=duration_ms,
            target=target,
            request=_snapshot_request(request, response),
            response=_snapshot_response(response),
            found=found,
            response_body_length=len(body),
            url=_sent_url(request, response.request),
            saved_body_path=self._save_body(started_ns, body),
        )

    def _save_body(self, started_ns: int, body: bytes) -> Optional[str]:
        """Write the raw body under the output directory, named by capture time."""
        if not self.output_directory:
            return None
        path = self.output_directory / str(started_ns)
        try:
            path.write_bytes(body)
        except OSError as e:
            logger.error(f"Cannot save response body to {path}: {e}")
            return None
        return str(path)
