"""
Unit tests for scan orchestration and result aggregation.
"""

import httpx
import pytest

from nightcrawler.core.request import load_request_file, parse_request, request_from_url
from nightcrawler.scanning.executor import ScanResult
from nightcrawler.scanning.mutators import PathSegmentMutator, QueryMutator, enumerate_test_cases
from nightcrawler.scanning.scanner import ScanOptions, Scanner, aggregate, summarize
from nightcrawler.scanning.vectors import BASELINE_VECTOR, AttackVector


def quote_breaks_sql(request):
    if b"%27" in request.extensions.get("target", b""):
        return httpx.Response(500, content=b"SQL syntax error")
    return httpx.Response(200, content=b"ok")


class TestScanner:
    """Test complete scans against a mock transport."""

    def test_query_scan(self, make_client, sql_vector):
        """Test two query keys and one vector give baseline plus two results."""
        baseline = parse_request(b"GET /search?q=1&lang=en HTTP/1.1\r\nHost: example.test\r\n\r\n")
        scanner = Scanner(make_client(quote_breaks_sql))

        results = scanner.scan(baseline, [sql_vector])

        assert [r.target for r in results] == ["BaseRequest", "urlquery q", "urlquery lang", "urlsegment search"]
        assert [r.found for r in results] == [False, True, True, False]
        assert results[0].vector == BASELINE_VECTOR

    def test_empty_catalog_gives_baseline_only(self, echo_client, baseline):
        """Test no vectors still runs the baseline."""
        results = Scanner(echo_client).scan(baseline, [])

        assert len(results) == 1
        assert results[0].is_baseline

    def test_result_order_follows_strategies(self, echo_client, baseline):
        """Test query, then header, then path results."""
        vectors = [AttackVector(Vector="A"), AttackVector(Vector="B")]
        scanner = Scanner(echo_client, ScanOptions(scan_headers=True))

        results = scanner.scan(baseline, vectors)

        sections = [r.target.split()[0] for r in results[1:]]
        assert len(results) == 1 + 10
        assert sections == ["urlquery"] * 4 + ["header"] * 4 + ["urlsegment"] * 2

    def test_reflections_in_headers_and_path_are_found(self, echo_client, baseline):
        """Test the echoing target reflects header and path payloads."""
        vector = AttackVector(Vector="nightcrawler4711")
        results = Scanner(echo_client, ScanOptions(scan_headers=True)).scan(baseline, [vector])

        assert all(r.found for r in results[1:])
        assert not results[0].found

    def test_partial_failures_are_kept(self, make_client, baseline):
        """Test failed test cases are reported alongside successful ones."""

        def handler(request):
            if b"boom" in request.extensions.get("target", b""):
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, content=b"ok")

        vectors = [AttackVector(Vector="boom"), AttackVector(Vector="fine")]
        results = Scanner(make_client(handler)).scan(baseline, vectors)

        assert len(results) == 1 + 6
        assert [r.failed for r in results[1:]] == [True, False] * 3
        assert summarize(results)["errors"] == 3

    def test_max_test_cases(self, make_client, baseline):
        """Test execution stops once the cap is reached."""
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        vectors = [AttackVector(Vector="A"), AttackVector(Vector="B")]
        results = Scanner(make_client(handler), ScanOptions(max_test_cases=3)).scan(baseline, vectors)

        assert len(results) == 1 + 3
        assert len(calls) == 4

    def test_zero_cap_runs_baseline_only(self, echo_client, baseline, sql_vector):
        """Test a cap of zero still runs the baseline."""
        results = Scanner(echo_client, ScanOptions(max_test_cases=0)).scan(baseline, [sql_vector])

        assert len(results) == 1

    def test_negative_cap_is_rejected(self):
        """Test a negative cap is a usage error."""
        with pytest.raises(ValueError):
            ScanOptions(max_test_cases=-1)

    def test_baseline_is_not_mutated(self, echo_client, baseline, sql_vector):
        """Test the scan never modifies the baseline request."""
        wire = baseline.to_wire()

        Scanner(echo_client, ScanOptions(scan_headers=True)).scan(baseline, [sql_vector])

        assert baseline.to_wire() == wire

    def test_on_result_callback(self, echo_client, baseline, sql_vector):
        """Test the callback sees every result in order."""
        seen = []
        results = Scanner(echo_client, on_result=seen.append).scan(baseline, [sql_vector])

        assert seen == results


class FailingQueryMutator(QueryMutator):
    """Query strategy whose injection always fails to encode."""

    def mutate(self, request, point, vector):
        raise UnicodeEncodeError("ascii", vector.payload, 0, 1, "ordinal not in range(128)")


class TestNonAsciiPayloads:
    """Test payloads and baselines outside ASCII never abort a scan."""

    def test_accented_payload_with_headers(self, echo_client):
        """Test a UTF-8 payload reaches every injection point of a URL baseline."""
        baseline = request_from_url("http://example.test/a?q=1", "UA")
        scanner = Scanner(echo_client, ScanOptions(scan_headers=True))

        results = scanner.scan(baseline, [AttackVector(Vector="é<x>")])

        assert [r.target for r in results] == ["BaseRequest", "urlquery q", "header User-Agent", "urlsegment a"]
        assert [r.error for r in results] == [None] * 4
        assert results[2].found

    @pytest.mark.parametrize("payload", ["é<x>", "日本語", "\u2028", "\U0001f600", "Å"])
    def test_every_strategy_accepts_unicode(self, echo_client, payload):
        """Test query, header and path strategies each give one result per case."""
        baseline = request_from_url("http://example.test/a?q=1", "UA")
        vectors = [AttackVector(Vector=payload)]
        cases = len(list(enumerate_test_cases(baseline, vectors, scan_headers=True)))

        results = Scanner(echo_client, ScanOptions(scan_headers=True)).scan(baseline, vectors)

        assert cases == 3
        assert len(results) == 1 + cases
        assert not any(r.failed for r in results)

    def test_high_byte_baseline_file(self, echo_client, tmp_path):
        """Test a latin-1 header in a saved request is sent and mutated byte for byte."""
        path = tmp_path / "req.txt"
        path.write_bytes(b"GET /a?q=1 HTTP/1.1\r\nHost: example.test\r\nX-Lang: caf\xe9\r\n\r\n")
        baseline = load_request_file(path)

        results = Scanner(echo_client, ScanOptions(scan_headers=True)).scan(baseline, [AttackVector(Vector="é")])

        assert [r.target for r in results] == ["BaseRequest", "urlquery q", "header X-Lang", "urlsegment a"]
        assert not any(r.failed for r in results)
        assert results[2].found
        assert dict(baseline.headers.raw)[b"X-Lang"] == b"caf\xe9"

    def test_mutation_failure_becomes_error_result(self, echo_client, baseline, monkeypatch):
        """Test a case whose injection raises is reported and the scan goes on."""
        monkeypatch.setattr(
            "nightcrawler.scanning.scanner.build_mutators",
            lambda baseline, vectors, *args: [FailingQueryMutator(baseline, vectors),
                                              PathSegmentMutator(baseline, vectors)],
        )

        results = Scanner(echo_client).scan(baseline, [AttackVector(Vector="x")])

        assert len(results) == 1 + 3
        assert [r.failed for r in results] == [False, True, True, False]
        assert results[1].error.startswith("UnicodeEncodeError")
        assert results[1].response is None


class TestAggregate:
    """Test result aggregation."""

    @staticmethod
    def result(target, found=False, error=None):
        return ScanResult(vector=BASELINE_VECTOR, duration_ms=1, target=target, found=found, error=error)

    def test_baseline_first_then_groups(self):
        """Test concatenation keeps group order and duplicates."""
        base = self.result("BaseRequest")
        a, b, c = self.result("urlquery q"), self.result("urlquery q"), self.result("urlsegment x")

        assert aggregate(base, [a, b], [], [c]) == [base, a, b, c]

    def test_summarize(self):
        """Test counters ignore the baseline for test cases and reflections."""
        results = [
            self.result("BaseRequest"),
            self.result("urlquery q", found=True),
            self.result("urlquery lang", error="boom"),
        ]

        assert summarize(results) == {"total": 3, "test_cases": 2, "found": 1, "errors": 1}
