"""
Injection scan orchestration.

A scan executes the unmutated baseline first, then every test case of the
query, header and path strategies strictly one after another, and returns
the aggregated result list: baseline first, then each strategy's results in
generation order. The list always has ``1 + executed test cases`` entries,
whatever the network does.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from ..core.http_client import ScanHTTPClient
from ..core.request import RawRequest
from .executor import Executor, ScanResult
from .mutators import KeepAllFilter, RequestFilter, build_mutators
from .vectors import AttackVector

logger = logging.getLogger(__name__)


@dataclass
class ScanOptions:
    """Per-scan switches."""
    scan_headers: bool = False
    output_directory: Optional[Union[str, Path]] = None
    sort_keys: bool = False
    max_test_cases: Optional[int] = None

    def __post_init__(self):
        if self.max_test_cases is not None and self.max_test_cases < 0:
            raise ValueError("max_test_cases must be >= 0")


def aggregate(baseline: ScanResult, *groups: Sequence[ScanResult]) -> List[ScanResult]:
    """Baseline result followed by each group in order; no deduplication."""
    results = [baseline]
    for group in groups:
        results.extend(group)
    return results


def summarize(results: Sequence[ScanResult]) -> Dict[str, int]:
    """Counts used for the console summary."""
    mutated = [r for r in results if not r.is_baseline]
    return {
        "total": len(results),
        "test_cases": len(mutated),
        "found": sum(1 for r in mutated if r.found),
        "errors": sum(1 for r in results if r.failed),
    }


class Scanner:
    """Runs one injection scan against a baseline request."""

    def __init__(
            self,
            client: ScanHTTPClient,
            options: Optional[ScanOptions] = None,
            request_filter: Optional[RequestFilter] = None,
            on_result: Optional[Callable[[ScanResult], None]] = None
    ):
        self.client = client
        self.options = options or ScanOptions()
        self.request_filter = request_filter or KeepAllFilter()
        self.on_result = on_result

    def scan(self, baseline: RawRequest, vectors: Sequence[AttackVector]) -> List[ScanResult]:
        """
        Execute the baseline and every enumerated test case.

        Args:
            baseline: Request to mutate; it is never modified
            vectors: Attack vector catalog

        Returns:
            Ordered result list, baseline first
        """
        executor = Executor(self.client, self.options.output_directory)
        logger.info(f"Scanning {baseline.method} {baseline.url} with {len(vectors)} vectors")

        baseline_result = executor.run_baseline(baseline)
        self._notify(baseline_result)

        cap = self.options.max_test_cases
        executed = 0
        groups = []
        for mutator in build_mutators(baseline, vectors, self.options.scan_headers, self.options.sort_keys):
            group = []
            for test_case in self.request_filter.apply(mutator):
                if cap is not None and executed >= cap:
                    break
                result = executor.run(test_case)
                executed += 1
                group.append(result)
                self._notify(result)
            groups.append(group)
            if cap is not None and executed >= cap:
                logger.warning(f"Test case limit reached ({cap}); remaining test cases skipped")
                break

        results = aggregate(baseline_result, *groups)
        stats = summarize(results)
        logger.info(
            f"Scan finished: {stats['test_cases']} test cases, "
            f"{stats['found']} reflections, {stats['errors']} errors"
        )
        return results

    def _notify(self, result: ScanResult):
        if self.on_result:
            self.on_result(result)
