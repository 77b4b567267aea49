"""
Loading of JSON input documents (attack vectors, fuzzing specs).
"""

import json
from pathlib import Path
from typing import Any, Union

from .exceptions import ConfigurationError


def describe_json_error(text: str, error: json.JSONDecodeError) -> str:
    """Point at the offending line with a caret, e.g.::

        Error in line 3: Expecting ',' delimiter
        "Iterations": 3
              ^
    """
    lines = text.splitlines() or [""]
    line_text = lines[min(error.lineno, len(lines)) - 1]
    caret = " " * max(error.colno - 1, 0) + "^"
    return f"Error in line {error.lineno}: {error.msg}\n{line_text}\n{caret}"


def parse_json_document(text: str, what: str) -> Any:
    """Parse JSON text, raising ConfigurationError with a located message."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Malformed {what}: {describe_json_error(text, e)}") from e


def load_json_document(file_name: Union[str, Path], what: str) -> Any:
    """Read and parse a JSON document from disk."""
    try:
        text = Path(file_name).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read {what} {file_name}: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigurationError(f"{what.capitalize()} {file_name} is not valid UTF-8: {e}") from e
    return parse_json_document(text, what)
