"""
Injection scanning engine for Nightcrawler.

This module provides:
- Attack vector catalog loading
- Query, header and path-segment mutation strategies
- Single-shot execution with reflection detection
- Ordered result aggregation
"""

from .vectors import AttackVector, TargetSection, BASELINE_VECTOR, load_vectors, parse_vectors
from .mutators import (
    TestCase,
    FilterDecision,
    RequestFilter,
    TargetPatternFilter,
    QueryMutator,
    HeaderMutator,
    PathSegmentMutator,
    enumerate_test_cases,
)
from .executor import Executor, ScanResult, RequestSnapshot, ResponseSnapshot
from .scanner import Scanner, ScanOptions, aggregate, summarize

__all__ = [
    'AttackVector',
    'TargetSection',
    'BASELINE_VECTOR',
    'load_vectors',
    'parse_vectors',
    'TestCase',
    'FilterDecision',
    'RequestFilter',
    'TargetPatternFilter',
    'QueryMutator',
    'HeaderMutator',
    'PathSegmentMutator',
    'enumerate_test_cases',
    'Executor',
    'ScanResult',
    'RequestSnapshot',
    'ResponseSnapshot',
    'Scanner',
    'ScanOptions',
    'aggregate',
    'summarize',
]
