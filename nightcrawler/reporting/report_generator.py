"""
Report generator for injection scan results.

Rendering is a pure function of the result sequence: no timestamps, host
names or other environment data end up in the output, so rendering the same
results twice gives identical text.
"""

import csv
import io
import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Sequence, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..core.exceptions import ReportError
from ..scanning.executor import ScanResult
from ..scanning.scanner import summarize

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "target", "vector", "test", "sql_injection", "found", "status_code",
    "duration_ms", "response_body_length", "url", "error", "saved_body_path",
]


class ReportFormat(Enum):
    """Supported report formats."""
    HTML = "html"
    JSON = "json"
    CSV = "csv"


def result_to_dict(result: ScanResult) -> Dict[str, Any]:
    """Flatten a result into JSON-serializable data."""
    data = {
        "target": result.target,
        "baseline": result.is_baseline,
        "vector": result.vector.payload,
        "test": result.vector.detection_text,
        "sql_injection": result.vector.sql_injection,
        "found": result.found,
        "duration_ms": result.duration_ms,
        "response_body_length": result.response_body_length,
        "url": result.url,
        "error": result.error,
        "saved_body_path": result.saved_body_path,
        "request": None,
        "response": None,
    }
    if result.request:
        data["request"] = {
            "method": result.request.method,
            "url": result.request.url,
            "headers": [list(item) for item in result.request.headers],
            "content_length": result.request.content_length,
            "protocol": result.request.protocol,
        }
    if result.response:
        data["response"] = {
            "status_code": result.response.status_code,
            "headers": [list(item) for item in result.response.headers],
            "content_length": result.response.content_length,
            "protocol": result.response.protocol,
        }
    return data


class ReportGenerator:
    """Render scan results as HTML, JSON or CSV."""

    def __init__(self):
        self.templates_dir = os.path.join(os.path.dirname(__file__), "templates")
        self.jinja_env = Environment(
            loader=FileSystemLoader(self.templates_dir),
            autoescape=select_autoescape(['html', 'xml'])
        )

    def render(self, results: Sequence[ScanResult], format: ReportFormat = ReportFormat.HTML) -> str:
        """
        Render results to text.

        Args:
            results: Ordered scan results, baseline first
            format: Output format

        Returns:
            Rendered report
        """
        if format == ReportFormat.HTML:
            return self._render_html(results)
        elif format == ReportFormat.JSON:
            return self._render_json(results)
        elif format == ReportFormat.CSV:
            return self._render_csv(results)
        raise ValueError(f"Unsupported report format: {format}")

    def write(
            self,
            results: Sequence[ScanResult],
            output_path: Union[str, Path],
            format: ReportFormat = ReportFormat.HTML
    ) -> Path:
        """
        Render results and write them to ``output_path``.

        Raises:
            ReportError: If the file cannot be written
        """
        content = self.render(results, format)
        path = Path(output_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8', newline='') as f:
                f.write(content)
        except OSError as e:
            raise ReportError(f"Cannot write report {path}: {e}") from e

        logger.info(f"Generated {format.value} report: {path}")
        return path

    def _render_html(self, results: Sequence[ScanResult]) -> str:
        template = self.jinja_env.get_template('scan_report.html')
        return template.render(
            results=[result_to_dict(r) for r in results],
            summary=summarize(results),
        )

    def _render_json(self, results: Sequence[ScanResult]) -> str:
        report = {
            "summary": summarize(results),
            "results": [result_to_dict(r) for r in results],
        }
        return json.dumps(report, indent=2, ensure_ascii=False)

    def _render_csv(self, results: Sequence[ScanResult]) -> str:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        for result in results:
            row = result_to_dict(result)
            row["status_code"] = result.response.status_code if result.response else ""
            writer.writerow(row)
        return buffer.getvalue()


def render_report(results: Sequence[ScanResult], format: Union[ReportFormat, str] = ReportFormat.HTML) -> str:
    """Module-level shortcut for ``ReportGenerator().render``."""
    return ReportGenerator().render(results, ReportFormat(format))


def write_report(
        results: Sequence[ScanResult],
        output_path: Union[str, Path],
        format: Union[ReportFormat, str] = ReportFormat.HTML
) -> Path:
    """Module-level shortcut for ``ReportGenerator().write``."""
    return ReportGenerator().write(results, output_path, ReportFormat(format))


def report_format_for(path: Union[str, Path], default: str = "html") -> ReportFormat:
    """Pick the format from the file extension, falling back to ``default``."""
    suffix = Path(path).suffix.lower().lstrip(".")
    aliases: List[str] = [f.value for f in ReportFormat]
    if suffix == "htm":
        suffix = "html"
    return ReportFormat(suffix if suffix in aliases else default)
