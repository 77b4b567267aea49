"""
Reporting for Nightcrawler scan results.

Scan results can be rendered as HTML (jinja2 template), JSON or CSV.
"""

from .report_generator import (
    ReportGenerator,
    ReportFormat,
    render_report,
    write_report,
    report_format_for,
)

__all__ = [
    'ReportGenerator',
    'ReportFormat',
    'render_report',
    'write_report',
    'report_format_for',
]
