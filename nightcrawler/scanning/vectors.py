"""
Attack vector catalog.

Vectors are read from a JSON array such as::

    [
        {"Vector": "'", "Test": "SQL syntax", "SqlInjection": true},
        {"Vector": "../../etc/passwd", "Test": "root:", "Section": "urlsegment"}
    ]

Keys are matched case-insensitively. ``Test`` defaults to ``Vector``;
``Section`` restricts the vector to some injection point kinds and applies
it everywhere when empty.
"""

import logging
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.documents import load_json_document, parse_json_document
from ..core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class TargetSection(str, Enum):
    """Kinds of injection points."""
    QUERY = "urlquery"
    HEADER = "header"
    PATH_SEGMENT = "urlsegment"


_SECTION_ALIASES = {
    "urlquery": TargetSection.QUERY,
    "query": TargetSection.QUERY,
    "header": TargetSection.HEADER,
    "headers": TargetSection.HEADER,
    "urlsegment": TargetSection.PATH_SEGMENT,
    "segment": TargetSection.PATH_SEGMENT,
    "path": TargetSection.PATH_SEGMENT,
    "path-segment": TargetSection.PATH_SEGMENT,
}

_CANONICAL_KEYS = {
    "vector": "Vector",
    "test": "Test",
    "sqlinjection": "SqlInjection",
    "section": "Section",
}


class AttackVector(BaseModel):
    """A payload and the marker text that flags a response as suspicious."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    payload: str = Field(alias="Vector")
    test: str = Field(default="", alias="Test")
    sql_injection: bool = Field(default=False, alias="SqlInjection")
    sections: FrozenSet[TargetSection] = Field(default_factory=frozenset, alias="Section")

    @field_validator("test", mode="before")
    @classmethod
    def none_test_is_empty(cls, v):
        return "" if v is None else v

    @field_validator("sections", mode="before")
    @classmethod
    def parse_sections(cls, v):
        """Accept ``"urlquery,header"``, ``"urlsegment"`` or a list of names."""
        if v is None or v == "":
            return frozenset()
        if isinstance(v, str):
            names = [n for n in re.split(r"[\s,;|]+", v) if n]
        elif isinstance(v, (list, tuple, set, frozenset)):
            names = list(v)
        else:
            raise ValueError(f"Section must be a string or a list, got {type(v).__name__}")

        sections = set()
        for name in names:
            if isinstance(name, TargetSection):
                sections.add(name)
                continue
            section = _SECTION_ALIASES.get(str(name).strip().lower())
            if section is None:
                raise ValueError(
                    f"Unknown section {name!r}; expected one of urlquery, header, urlsegment"
                )
            sections.add(section)
        return frozenset(sections)

    @property
    def detection_text(self) -> str:
        """Marker searched in the response body."""
        return self.test or self.payload

    def applies_to(self, section: TargetSection) -> bool:
        """Whether this vector may be injected into ``section`` points."""
        return not self.sections or section in self.sections

    @property
    def is_baseline(self) -> bool:
        return self.payload == "" and self.test == ""


# Sentinel attached to the unmutated baseline result.
BASELINE_VECTOR = AttackVector(Vector="")


def _normalize_keys(entry: Dict[str, Any]) -> Dict[str, Any]:
    return {_CANONICAL_KEYS.get(str(k).lower(), k): v for k, v in entry.items()}


def parse_vectors(document: Any) -> List[AttackVector]:
    """
    Build the ordered vector catalog from a decoded JSON document.

    Args:
        document: Decoded JSON (must be an array of objects)

    Returns:
        Vectors in document order

    Raises:
        ConfigurationError: If the document or an entry is invalid
    """
    if not isinstance(document, list):
        raise ConfigurationError("Attack vector document must be a JSON array")

    vectors = []
    for index, entry in enumerate(document):
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Attack vector #{index} is not an object")
        try:
            vectors.append(AttackVector.model_validate(_normalize_keys(entry)))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid attack vector #{index}: {e}") from e
    return vectors


def parse_vectors_text(text: str) -> List[AttackVector]:
    """Parse a vector catalog from JSON text."""
    return parse_vectors(parse_json_document(text, "attack vector document"))


def load_vectors(file_name: Union[str, Path]) -> List[AttackVector]:
    """Load the vector catalog from a JSON file."""
    vectors = parse_vectors(load_json_document(file_name, "attack vector document"))
    logger.info(f"Loaded {len(vectors)} attack vectors from {file_name}")
    return vectors
