"""
Metrics Engine
==============

Pure, deterministic metrics over normalized text:

- word_count: maximal runs of non-whitespace
- fingerprint: SHA-256 of the UTF-8 bytes (any single-character change
  changes it)
- ref_density: "§ 123.45"-style citations per 1,000 words
- def_density: “typographically quoted” terms per word

The reference and definition patterns are heuristics. Documents that cite
without the section mark or quote with straight quotes are under-counted;
the numbers are a complexity signal, not a legal count.

Version: 0.1.0
"""

import hashlib
import re
from dataclasses import asdict, dataclass
from typing import Any


# Section mark, optional whitespace, digit groups separated by periods
REFERENCE_PATTERN = re.compile(r"§\s*\d+(?:\.\d+)*")

# Curly-quoted span, non-overlapping, leftmost first
DEFINITION_PATTERN = re.compile(r"“[^”]+”")

WORD_PATTERN = re.compile(r"\S+")


@dataclass(frozen=True)
class UnitMetrics:
    """Metrics computed for one unit's normalized text."""

    word_count: int
    fingerprint: str
    ref_density: float
    def_density: float
    ref_count: int = 0
    def_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def count_words(text: str) -> int:
    return sum(1 for _ in WORD_PATTERN.finditer(text))


def fingerprint(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def count_references(text: str) -> int:
    return len(REFERENCE_PATTERN.findall(text))


def count_definitions(text: str) -> int:
    return len(DEFINITION_PATTERN.findall(text))


def compute(text: str) -> UnitMetrics:
    """
    Compute all metrics for a normalized text.

    Densities are 0 for a text with no words.

    Args:
        text: Normalized text

    Returns:
        UnitMetrics
    """
    words = count_words(text)
    refs = count_references(text)
    defs = count_definitions(text)

    if words == 0:
        ref_density = 0.0
        def_density = 0.0
    else:
        ref_density = refs / words * 1000
        def_density = defs / words

    return UnitMetrics(
        word_count=words,
        fingerprint=fingerprint(text),
        ref_density=ref_density,
        def_density=def_density,
        ref_count=refs,
        def_count=defs,
    )
