"""
Unit tests for the attack vector catalog.
"""

import json

import pytest

from nightcrawler.core.exceptions import ConfigurationError
from nightcrawler.scanning.vectors import (
    BASELINE_VECTOR,
    AttackVector,
    TargetSection,
    load_vectors,
    parse_vectors,
    parse_vectors_text,
)


class TestAttackVector:
    """Test single vector semantics."""

    def test_detection_text_defaults_to_payload(self):
        """Test an empty Test field falls back to the payload."""
        assert AttackVector(Vector="<x>").detection_text == "<x>"
        assert AttackVector(Vector="'", Test="SQL syntax").detection_text == "SQL syntax"

    def test_no_sections_applies_everywhere(self):
        """Test an unrestricted vector applies to every section."""
        vector = AttackVector(Vector="x")

        assert all(vector.applies_to(section) for section in TargetSection)

    def test_section_string_is_parsed(self):
        """Test comma separated section names and aliases."""
        vector = AttackVector(Vector="x", Section="urlquery, path")

        assert vector.sections == frozenset({TargetSection.QUERY, TargetSection.PATH_SEGMENT})
        assert not vector.applies_to(TargetSection.HEADER)

    def test_unknown_section_is_rejected(self):
        """Test an unknown section name fails validation."""
        with pytest.raises(ValueError):
            AttackVector(Vector="x", Section="cookie")

    def test_baseline_sentinel(self):
        """Test the baseline vector is empty."""
        assert BASELINE_VECTOR.is_baseline
        assert BASELINE_VECTOR.detection_text == ""
        assert not AttackVector(Vector="x").is_baseline


class TestParseVectors:
    """Test catalog loading."""

    def test_document_order_and_case_insensitive_keys(self):
        """Test vectors keep document order and keys ignore case."""
        vectors = parse_vectors([
            {"vector": "a", "TEST": "A"},
            {"Vector": "b", "sqlinjection": True, "section": ["header"]},
        ])

        assert [v.payload for v in vectors] == ["a", "b"]
        assert vectors[0].test == "A"
        assert vectors[1].sql_injection is True
        assert vectors[1].sections == frozenset({TargetSection.HEADER})

    def test_empty_catalog(self):
        """Test an empty array is a valid catalog."""
        assert parse_vectors([]) == []

    @pytest.mark.parametrize("document", [
        {"Vector": "x"},
        ["x"],
        [{"Test": "missing payload"}],
        [{"Vector": "x", "SqlInjection": "maybe"}],
    ])
    def test_invalid_documents_raise(self, document):
        """Test malformed catalogs raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            parse_vectors(document)

    def test_malformed_json_points_at_line(self):
        """Test JSON syntax errors name the line."""
        text = '[\n  {"Vector": "x"}\n  {"Vector": "y"}\n]'

        with pytest.raises(ConfigurationError) as exc_info:
            parse_vectors_text(text)

        assert "Error in line 3" in str(exc_info.value)
        assert "^" in str(exc_info.value)

    def test_load_vectors_file(self, tmp_path):
        """Test loading a catalog from disk."""
        path = tmp_path / "vectors.json"
        path.write_text(json.dumps([{"Vector": "'", "Test": "SQL syntax"}]), encoding="utf-8")

        vectors = load_vectors(path)

        assert vectors == [AttackVector(Vector="'", Test="SQL syntax")]

    def test_missing_file_raises(self, tmp_path):
        """Test a missing catalog raises ConfigurationError."""
        with pytest.raises(ConfigurationError):
            load_vectors(tmp_path / "nope.json")

    def test_non_utf8_file_raises(self, tmp_path):
        """Test a catalog that is not UTF-8 raises ConfigurationError."""
        path = tmp_path / "vectors.json"
        path.write_bytes(b'[{"Vector": "\xff\xfe"}]')

        with pytest.raises(ConfigurationError, match="not valid UTF-8"):
            load_vectors(path)
