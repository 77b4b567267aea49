"""
Mutation strategies.

Each mutator enumerates injection points x vectors of a baseline request and
yields one TestCase per pair. Injection points are the outer loop, vectors
the inner loop. Every TestCase owns a fresh clone of the baseline; the
baseline itself is never modified.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..core.exceptions import ConfigurationError
from ..core.request import RawRequest
from .vectors import AttackVector, TargetSection

logger = logging.getLogger(__name__)


@dataclass
class TestCase:
    """One isolated request variant scheduled for execution."""
    __test__ = False

    request: RawRequest
    vector: AttackVector
    target: str
    error: Optional[str] = None


class FilterAction(Enum):
    KEEP = "keep"
    DROP = "drop"
    REWRITE = "rewrite"


@dataclass(frozen=True)
class FilterDecision:
    """Outcome of a RequestFilter for one candidate test case."""
    action: FilterAction
    replacement: Optional[TestCase] = None

    @classmethod
    def keep(cls) -> "FilterDecision":
        return cls(FilterAction.KEEP)

    @classmethod
    def drop(cls) -> "FilterDecision":
        return cls(FilterAction.DROP)

    @classmethod
    def rewrite(cls, replacement: TestCase) -> "FilterDecision":
        return cls(FilterAction.REWRITE, replacement)


class RequestFilter(ABC):
    """Decides, per candidate, whether a test case is kept, dropped or rewritten."""

    @abstractmethod
    def decide(self, candidate: TestCase) -> FilterDecision:
        ...

    def apply(self, candidates: Iterable[TestCase]) -> Iterator[TestCase]:
        for candidate in candidates:
            decision = self.decide(candidate)
            if decision.action is FilterAction.KEEP:
                yield candidate
            elif decision.action is FilterAction.REWRITE:
                if decision.replacement is None:
                    raise ValueError("rewrite decision without a replacement test case")
                yield decision.replacement
            else:
                logger.debug(f"Filtered out {candidate.target} ({candidate.vector.payload!r})")


class KeepAllFilter(RequestFilter):
    def decide(self, candidate: TestCase) -> FilterDecision:
        return FilterDecision.keep()


class TargetPatternFilter(RequestFilter):
    """Drops test cases whose target descriptor matches an exclude pattern,
    or fails to match an include pattern when one is given."""

    def __init__(self, include: Optional[Sequence[str]] = None, exclude: Optional[Sequence[str]] = None):
        try:
            self.include = [re.compile(p) for p in include or []]
            self.exclude = [re.compile(p) for p in exclude or []]
        except re.error as e:
            raise ConfigurationError(f"Invalid target pattern {e.pattern!r}: {e}") from e

    def decide(self, candidate: TestCase) -> FilterDecision:
        if any(p.search(candidate.target) for p in self.exclude):
            return FilterDecision.drop()
        if self.include and not any(p.search(candidate.target) for p in self.include):
            return FilterDecision.drop()
        return FilterDecision.keep()


class Mutator(ABC):
    """Base class of the query, header and path-segment strategies."""

    section: TargetSection
    label: str

    def __init__(self, baseline: RawRequest, vectors: Sequence[AttackVector], sort_keys: bool = False):
        self.baseline = baseline
        self.vectors = [v for v in vectors if v.applies_to(self.section)]
        self.sort_keys = sort_keys

    @abstractmethod
    def injection_points(self) -> List[Tuple[Any, str]]:
        """Return (point, name) pairs; ``name`` ends up in the target descriptor."""
        ...

    @abstractmethod
    def mutate(self, request: RawRequest, point: Any, vector: AttackVector) -> None:
        """Inject ``vector`` into ``request`` (a clone) at ``point``."""
        ...

    def __iter__(self) -> Iterator[TestCase]:
        for point, name in self.injection_points():
            for vector in self.vectors:
                target = f"{self.label} {name}"
                clone = self.baseline.clone()
                error = None
                try:
                    self.mutate(clone, point, vector)
                except ValueError as e:
                    error = f"{type(e).__name__}: {e}"
                    logger.warning(f"Cannot inject {vector.payload!r} into {target}: {error}")
                yield TestCase(request=clone, vector=vector, target=target, error=error)

    def count(self) -> int:
        return len(self.injection_points()) * len(self.vectors)


class QueryMutator(Mutator):
    """Replaces the value of one query key with the payload."""

    section = TargetSection.QUERY
    label = "urlquery"

    def injection_points(self) -> List[Tuple[Any, str]]:
        keys = self.baseline.query_keys()
        if self.sort_keys:
            keys = sorted(keys)
        return [(key, key) for key in keys]

    def mutate(self, request: RawRequest, point: Any, vector: AttackVector) -> None:
        request.set_query_value(point, vector.payload)


class HeaderMutator(Mutator):
    """Appends the payload to the existing value of one header."""

    section = TargetSection.HEADER
    label = "header"

    def injection_points(self) -> List[Tuple[Any, str]]:
        names = self.baseline.header_names()
        if self.sort_keys:
            names = sorted(names, key=str.lower)
        return [(name, name) for name in names]

    def mutate(self, request: RawRequest, point: Any, vector: AttackVector) -> None:
        request.append_header_value(point, vector.payload)


class PathSegmentMutator(Mutator):
    """Replaces one non-empty path segment with the raw, unescaped payload."""

    section = TargetSection.PATH_SEGMENT
    label = "urlsegment"

    def injection_points(self) -> List[Tuple[Any, str]]:
        segments = self.baseline.path.split("/")
        return [(index, segment) for index, segment in enumerate(segments) if segment]

    def mutate(self, request: RawRequest, point: Any, vector: AttackVector) -> None:
        segments = request.path.split("/")
        segments[point] = vector.payload
        request.path = "/".join(segments)


def build_mutators(
        baseline: RawRequest,
        vectors: Sequence[AttackVector],
        scan_headers: bool = False,
        sort_keys: bool = False
) -> List[Mutator]:
    """Strategies in execution order: query, header (optional), path."""
    mutators: List[Mutator] = [QueryMutator(baseline, vectors, sort_keys)]
    if scan_headers:
        mutators.append(HeaderMutator(baseline, vectors, sort_keys))
    mutators.append(PathSegmentMutator(baseline, vectors, sort_keys))
    return mutators


def enumerate_test_cases(
        baseline: RawRequest,
        vectors: Sequence[AttackVector],
        scan_headers: bool = False,
        sort_keys: bool = False,
        request_filter: Optional[RequestFilter] = None
) -> Iterator[TestCase]:
    """
    Lazily enumerate every test case of a scan in execution order.

    Args:
        baseline: Unmutated request; only clones of it are modified
        vectors: Vector catalog
        scan_headers: Enable the header mutator
        sort_keys: Enumerate query keys and header names lexically
        request_filter: Optional keep / drop / rewrite strategy

    Returns:
        Iterator of test cases
    """
    request_filter = request_filter or KeepAllFilter()
    for mutator in build_mutators(baseline, vectors, scan_headers, sort_keys):
        logger.debug(f"{type(mutator).__name__}: {mutator.count()} candidate test cases")
        yield from request_filter.apply(mutator)
