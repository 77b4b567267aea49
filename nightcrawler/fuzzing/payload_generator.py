"""
Grammar driven fuzz payload generator.

A fuzzing spec maps single-character class keys to candidate strings::

    {
        "Vectors": {"q": ["'", "\\""], "s": ["<script>", "<svg>"]},
        "Iterations": 100,
        "BuildLogic": "sqs",
        "Seed": 42
    }

Each iteration builds one payload from ``len(BuildLogic)`` segments. The
characters of BuildLogic select the class of each segment; a character
without a class is used literally. Without BuildLogic every iteration is a
single segment of a randomly drawn class. The same seed always yields the
same payload sequence.
"""

import html
import logging
import random
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Union
from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.documents import load_json_document, parse_json_document
from ..core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

Encoding = Callable[[str], bytes]
Sink = Callable[[bytes], bool]

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


def identity_encode(text: str) -> bytes:
    return text.encode("utf-8")


def url_encode(text: str) -> bytes:
    """Query-string escaping; spaces become ``+``."""
    return quote_plus(text).encode("ascii")


def html_encode(text: str) -> bytes:
    return html.escape(text).encode("utf-8")


ENCODINGS: Dict[str, Encoding] = {
    "none": identity_encode,
    "url": url_encode,
    "html": html_encode,
}


def resolve_encodings(names: Optional[Sequence[str]] = None) -> List[Encoding]:
    """Map encoding names to functions; no names means identity only."""
    if not names:
        return [identity_encode]
    encodings = []
    for name in names:
        try:
            encodings.append(ENCODINGS[name.lower()])
        except KeyError:
            raise ConfigurationError(
                f"Unknown encoding {name!r}; expected one of {sorted(ENCODINGS)}"
            )
    return encodings


class FuzzingSpec(BaseModel):
    """Vector classes, iteration count, grammar and seed of a fuzzing run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    vectors: Dict[str, List[str]] = Field(default_factory=dict, alias="Vectors")
    iterations: int = Field(default=0, ge=0, alias="Iterations")
    build_logic: str = Field(default="", alias="BuildLogic")
    seed: int = Field(default=0, ge=INT64_MIN, le=INT64_MAX, alias="Seed")

    @field_validator("vectors", mode="before")
    @classmethod
    def none_is_empty(cls, v):
        return {} if v is None else v

    @field_validator("build_logic", mode="before")
    @classmethod
    def none_is_no_grammar(cls, v):
        return "" if v is None else v

    @field_validator("vectors")
    @classmethod
    def validate_classes(cls, v):
        """Class keys are single characters with at least one candidate."""
        for key, candidates in v.items():
            if len(key) != 1:
                raise ValueError(f"Vector class key {key!r} must be a single character")
            if not candidates:
                raise ValueError(f"Vector class {key!r} has no candidates")
        return v


def parse_fuzzing_spec(document) -> FuzzingSpec:
    """Validate a decoded fuzzing spec document."""
    if not isinstance(document, dict):
        raise ConfigurationError("Fuzzing spec must be a JSON object")
    try:
        return FuzzingSpec.model_validate(document)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid fuzzing spec: {e}") from e


def parse_fuzzing_spec_text(text: str) -> FuzzingSpec:
    return parse_fuzzing_spec(parse_json_document(text, "fuzzing spec"))


def load_fuzzing_spec(file_name: Union[str, Path]) -> FuzzingSpec:
    """Load a fuzzing spec from a JSON file."""
    return parse_fuzzing_spec(load_json_document(file_name, "fuzzing spec"))


class PayloadGenerator:
    """Generate deterministic fuzz payloads from a FuzzingSpec."""

    def __init__(self, spec: FuzzingSpec, encodings: Optional[Sequence[Encoding]] = None):
        if not spec.build_logic and not spec.vectors:
            raise ConfigurationError("Fuzzing spec has neither BuildLogic nor vector classes")
        self.spec = spec
        self.encodings = list(encodings) if encodings else [identity_encode]
        self._keys = sorted(spec.vectors)

    def _next_class(self, rng: random.Random, position: int) -> str:
        grammar = self.spec.build_logic
        if grammar:
            return grammar[position % len(grammar)]
        return rng.choice(self._keys)

    def payloads(self) -> Iterator[bytes]:
        """
        Yield ``iterations`` payloads.

        Every call reseeds, so iterating twice gives the same sequence.
        """
        rng = random.Random(self.spec.seed)
        segments = len(self.spec.build_logic) or 1

        for _ in range(self.spec.iterations):
            buffer = bytearray()
            for position in range(segments):
                key = self._next_class(rng, position)
                candidates = self.spec.vectors.get(key)
                text = rng.choice(candidates) if candidates else key
                encoding = rng.choice(self.encodings)
                buffer += encoding(text)
            yield bytes(buffer)

    def run(self, sink: Sink) -> int:
        """
        Feed every payload to ``sink`` until it returns a falsy value.

        Args:
            sink: Called with each payload; return False to stop

        Returns:
            Number of payloads delivered to the sink
        """
        delivered = 0
        for payload in self.payloads():
            delivered += 1
            if not sink(payload):
                logger.warning(f"Generation stopped by sink after {delivered} payload(s)")
                break
        return delivered
